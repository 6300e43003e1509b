"""Audit logging for runtime security events."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog

from ..models.audit import AuditConfig, AuditEvent, AuditFormat

logger = structlog.get_logger(__name__)

DEFAULT_DESTINATION = "file://./audit.log"
FILE_SCHEME = "file://"


class AuditLogger:
    """Builds audit events, filters them and writes them to the configured sink.

    ``file://`` destinations are appended to by a background writer task
    between ``start`` and ``stop``; any other destination is emitted through
    structlog as ``audit_event`` records.
    """

    def __init__(self, config: AuditConfig) -> None:
        """
        Initialize audit logger.

        Args:
            config: Audit configuration
        """
        self.config = config
        self._file_path = self._parse_destination(config.destination)
        self._write_queue: asyncio.Queue[str] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def file_path(self) -> Path | None:
        return self._file_path

    async def start(self) -> None:
        """Start the background file writer."""
        if self._running or not self.enabled:
            return

        if self._file_path is not None:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)

        self._write_queue = asyncio.Queue()
        self._running = True
        self._writer_task = asyncio.create_task(self._log_writer())
        logger.info(
            "audit_logger_started",
            destination=str(self._file_path) if self._file_path else "structlog",
            format=self.config.format.value,
        )

    async def stop(self) -> None:
        """Flush pending records and stop the writer."""
        if not self._running:
            return

        self._running = False
        await self._write_queue.join()

        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
            self._writer_task = None

        logger.info("audit_logger_stopped")

    async def __aenter__(self) -> AuditLogger:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def log(
        self,
        event: str,
        success: bool = True,
        *,
        payload: Any = None,
        **fields: Any,
    ) -> AuditEvent | None:
        """
        Record an audit event.

        Args:
            event: Event name (e.g. 'tool.call')
            success: Whether the audited operation succeeded
            payload: Event payload, kept only when ``include_payloads`` is set
            **fields: agent, tool, workflow, user, error, metadata

        Returns:
            The recorded event, or None when disabled or filtered out
        """
        if not self.enabled:
            return None

        if self.config.log_events is not None and event not in self.config.log_events:
            return None

        audit_event = AuditEvent(event=event, success=success, **fields)
        if self.config.include_payloads and payload is not None:
            audit_event.payload = payload

        await self._write(self.format_event(audit_event))
        return audit_event

    def format_event(self, event: AuditEvent) -> str:
        match self.config.format:
            case AuditFormat.TEXT:
                return self._format_as_text(event)
            case AuditFormat.CEF:
                return self._format_as_cef(event)
            case _:
                return event.model_dump_json(exclude_none=True)

    async def log_tool_call(
        self,
        tool_id: str,
        agent: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        await self.log("tool.call", success, tool=tool_id, agent=agent, error=error)

    async def log_permission_denied(self, resource: str, action: str, agent: str) -> None:
        await self.log(
            "permission.denied",
            False,
            agent=agent,
            metadata={"resource": resource, "action": action},
        )

    async def log_credential_access(self, provider: str, agent: str | None = None) -> None:
        await self.log(
            "credential.access",
            True,
            agent=agent,
            metadata={"provider": provider},
        )

    async def log_policy_violation(self, policy_id: str, agent: str, violation: str) -> None:
        await self.log(
            "policy.violation",
            False,
            agent=agent,
            metadata={"policy_id": policy_id, "violation": violation},
        )

    async def log_workflow_execution(
        self,
        workflow_id: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        await self.log("workflow.execution", success, workflow=workflow_id, error=error)

    async def _write(self, line: str) -> None:
        if self._file_path is None:
            logger.info("audit_event", record=line)
        elif self._running:
            await self._write_queue.put(line)
        else:
            self._append_line(line)

    async def _log_writer(self) -> None:
        """Background task appending queued records to the audit file."""
        while True:
            line = await self._write_queue.get()
            try:
                self._append_line(line)
            except (OSError, ValueError) as e:
                logger.error(
                    "audit_log_file_write_failed",
                    log_file=str(self._file_path),
                    error=str(e),
                )
            finally:
                self._write_queue.task_done()

    def _append_line(self, line: str) -> None:
        with open(
            self._file_path, "a", encoding="utf-8", errors="backslashreplace"
        ) as f:
            f.write(line + "\n")

    @staticmethod
    def _parse_destination(destination: str | None) -> Path | None:
        destination = destination or DEFAULT_DESTINATION
        if destination.startswith(FILE_SCHEME):
            return Path(destination[len(FILE_SCHEME):])
        # syslog:// and http:// sinks are not implemented
        return None

    @staticmethod
    def _format_as_text(event: AuditEvent) -> str:
        parts = [
            event.timestamp.isoformat(),
            event.event,
            "SUCCESS" if event.success else "FAILURE",
        ]
        if event.agent:
            parts.append(f"agent={event.agent}")
        if event.tool:
            parts.append(f"tool={event.tool}")
        if event.workflow:
            parts.append(f"workflow={event.workflow}")
        if event.user:
            parts.append(f"user={event.user}")
        if event.error:
            parts.append(f'error="{event.error}"')
        return " | ".join(parts)

    @staticmethod
    def _format_as_cef(event: AuditEvent) -> str:
        # CEF:Version|Device Vendor|Device Product|Device Version|Signature ID|Name|Severity|Extension
        extension = []
        if event.agent:
            extension.append(f"agent={event.agent}")
        if event.tool:
            extension.append(f"tool={event.tool}")
        if event.workflow:
            extension.append(f"workflow={event.workflow}")
        if event.user:
            extension.append(f"suser={event.user}")

        severity = "3" if event.success else "7"
        return "|".join(
            [
                "CEF:1",
                "A22",
                "Runtime",
                "1.0",
                event.event,
                event.event,
                severity,
                " ".join(extension),
            ]
        )


class NoOpAuditLogger(AuditLogger):
    """Audit logger used when auditing is disabled."""

    def __init__(self) -> None:
        super().__init__(AuditConfig(enabled=False))

    async def log(self, event: str, success: bool = True, **fields: Any) -> None:
        return None
