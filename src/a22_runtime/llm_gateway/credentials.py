"""Credential resolution for provider definitions."""

from __future__ import annotations

import os

from ..models.program import CredentialMap, CredentialReference


class CredentialResolver:
    """Resolves ``env`` and ``secrets`` credential references.

    The default implementation reads both kinds from the process
    environment; override ``get_secret`` to integrate a secrets manager.
    """

    def get_env(self, name: str) -> str | None:
        return os.environ.get(name)

    async def get_secret(self, name: str) -> str | None:
        return os.environ.get(name)

    async def resolve_reference(self, reference: CredentialReference) -> str | None:
        if reference.type == "env":
            return self.get_env(reference.ref)
        return await self.get_secret(reference.ref)

    async def resolve(
        self, credentials: CredentialReference | CredentialMap | None
    ) -> str | None:
        """Resolve a single reference, or the first resolvable entry of a map."""
        match credentials:
            case CredentialReference():
                return await self.resolve_reference(credentials)
            case CredentialMap(entries=entries):
                for reference in entries.values():
                    value = await self.resolve_reference(reference)
                    if value:
                        return value
                return None
            case _:
                return None
