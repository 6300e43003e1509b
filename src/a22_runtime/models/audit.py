"""Audit event models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class AuditFormat(str, Enum):
    """Serialization formats supported by the audit sink."""

    JSON = "json"
    TEXT = "text"
    CEF = "cef"


class AuditConfig(BaseModel):
    """Audit logger configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(
        default=False,
        description="Whether audit events are written at all",
    )
    destination: str | None = Field(
        default=None,
        description="Sink destination (file://path); other values log through structlog",
    )
    format: AuditFormat = Field(
        default=AuditFormat.JSON,
        description="Line serialization format",
    )
    log_events: list[str] | None = Field(
        default=None,
        description="Event names to record (None records every event)",
    )
    include_payloads: bool = Field(
        default=False,
        description="Include event payloads in written records",
    )


class AuditEvent(BaseModel):
    """Security audit event handed to the audit sink."""

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Event timestamp",
    )
    event: str = Field(
        default="unknown",
        description="Event name (e.g. 'tool.call', 'workflow.execution')",
    )
    success: bool = Field(
        default=True,
        description="Whether the audited operation succeeded",
    )
    agent: str | None = None
    tool: str | None = None
    workflow: str | None = None
    user: str | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None
    payload: Any = None

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        """Serialize datetime to ISO format string."""
        return value.isoformat()
