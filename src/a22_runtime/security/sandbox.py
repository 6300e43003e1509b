"""Tool sandbox: validation, bounded execution and I/O guards for one tool call."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from ..exceptions import SandboxError, ValidationError
from ..models.program import (
    FieldValidation,
    FilesystemMode,
    OutputValidation,
    SandboxConfig,
    ToolSecurityConfig,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 30000


class InputValidator:
    """Validates tool inputs against per-field rules.

    Only fields that are both present in the input and declared in the rules
    are checked; there is no implicit required-field enforcement.
    """

    def __init__(self, rules: dict[str, FieldValidation] | None = None) -> None:
        self.rules = rules

    def validate(self, inputs: dict[str, Any]) -> None:
        """
        Validate inputs.

        Raises:
            ValidationError: On the first violated rule
        """
        if not self.rules:
            return

        for field_name, value in inputs.items():
            field_rules = self.rules.get(field_name)
            if field_rules is None:
                continue
            self._validate_field(field_name, value, field_rules)

    @staticmethod
    def _validate_field(field_name: str, value: Any, rules: FieldValidation) -> None:
        if isinstance(value, str):
            if rules.max_length is not None and len(value) > rules.max_length:
                raise ValidationError(
                    f'Field "{field_name}" exceeds max length: '
                    f"{len(value)} > {rules.max_length}",
                    field=field_name,
                )

            if rules.min_length is not None and len(value) < rules.min_length:
                raise ValidationError(
                    f'Field "{field_name}" below min length: '
                    f"{len(value)} < {rules.min_length}",
                    field=field_name,
                )

            if rules.pattern and not re.search(rules.pattern, value):
                raise ValidationError(
                    f'Field "{field_name}" does not match pattern: {rules.pattern}',
                    field=field_name,
                )

            for pattern in rules.deny_patterns or []:
                if re.search(pattern, value):
                    raise ValidationError(
                        f'Field "{field_name}" matches denied pattern: {pattern}',
                        field=field_name,
                    )

        # bool is an int subclass but never a numeric input
        elif isinstance(value, int | float) and not isinstance(value, bool):
            if rules.min is not None and value < rules.min:
                raise ValidationError(
                    f'Field "{field_name}" below minimum: {value} < {rules.min}',
                    field=field_name,
                )

            if rules.max is not None and value > rules.max:
                raise ValidationError(
                    f'Field "{field_name}" exceeds maximum: {value} > {rules.max}',
                    field=field_name,
                )


class OutputValidator:
    """Checks tool output against the configured size budget."""

    def __init__(self, config: OutputValidation | None = None) -> None:
        self.config = config

    def validate(self, output: Any) -> None:
        if not self.config:
            return

        if self.config.max_size_kb:
            encoded = json.dumps(output, default=str).encode("utf-8")
            size_kb = len(encoded) / 1024
            if size_kb > self.config.max_size_kb:
                raise ValidationError(
                    f"Output size exceeds limit: {size_kb:.2f}KB > "
                    f"{self.config.max_size_kb}KB"
                )

        # Schema validation is not performed; output_schema is accepted and ignored


class ToolSandbox:
    """Wraps a single tool invocation."""

    def __init__(
        self,
        security_config: ToolSecurityConfig | None = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        """
        Initialize the sandbox.

        Args:
            security_config: Tool security configuration (no checks when None)
            default_timeout_ms: Timeout used when the sandbox config sets none
        """
        self.security_config = security_config
        self.default_timeout_ms = default_timeout_ms
        self.input_validator = InputValidator(
            security_config.validation if security_config else None
        )
        self.output_validator = OutputValidator(
            security_config.output if security_config else None
        )

    async def execute(
        self,
        tool_fn: Callable[[dict[str, Any]], Awaitable[T]],
        inputs: dict[str, Any],
    ) -> T:
        """
        Run ``tool_fn(inputs)`` inside the sandbox.

        Args:
            tool_fn: Async tool function
            inputs: Evaluated tool inputs

        Returns:
            Tool output

        Raises:
            ValidationError: If inputs or output violate the declared rules
            SandboxError: If execution exceeds the timeout
        """
        self.input_validator.validate(inputs)

        config = self.get_config()
        if config is None:
            output = await tool_fn(inputs)
        else:
            timeout_ms = config.timeout_ms or self.default_timeout_ms
            output = await self._execute_with_timeout(tool_fn, inputs, timeout_ms)

        self.output_validator.validate(output)
        return output

    async def _execute_with_timeout(
        self,
        tool_fn: Callable[[dict[str, Any]], Awaitable[T]],
        inputs: dict[str, Any],
        timeout_ms: int,
    ) -> T:
        try:
            return await asyncio.wait_for(tool_fn(inputs), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            logger.warning("tool_execution_timeout", timeout_ms=timeout_ms)
            raise SandboxError(f"Tool execution timeout after {timeout_ms}ms") from e

    def check_network_access(self, host: str) -> None:
        """
        Check that the tool may contact ``host``.

        Raises:
            SandboxError: If network access is disabled or the host is not allowed
        """
        config = self.get_config()
        if config is None:
            return

        if not config.network_allowed:
            raise SandboxError("Network access is not allowed by sandbox policy")

        if config.network_hosts:
            allowed = any(
                host == allowed_host or host.endswith(f".{allowed_host}")
                for allowed_host in config.network_hosts
            )
            if not allowed:
                raise SandboxError(
                    f'Network access to "{host}" is not allowed. '
                    f"Allowed hosts: {', '.join(config.network_hosts)}"
                )

    def check_filesystem_access(self, path: str, write: bool = False) -> None:
        """
        Check that the tool may access ``path``.

        Raises:
            SandboxError: If filesystem access is disabled, read-only for a
                write, or the path is outside the allowed prefixes
        """
        config = self.get_config()
        if config is None:
            return

        if not config.filesystem_allowed:
            raise SandboxError("Filesystem access is not allowed by sandbox policy")

        if write and config.filesystem_mode == FilesystemMode.READONLY:
            raise SandboxError("Filesystem is in readonly mode, write access denied")

        if config.filesystem_paths:
            allowed = any(
                path.startswith(allowed_path) for allowed_path in config.filesystem_paths
            )
            if not allowed:
                raise SandboxError(
                    f'Filesystem access to "{path}" is not allowed. '
                    f"Allowed paths: {', '.join(config.filesystem_paths)}"
                )

    def get_config(self) -> SandboxConfig | None:
        return self.security_config.sandbox if self.security_config else None
