"""Runtime configuration settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models.audit import AuditConfig, AuditFormat


class Settings(BaseSettings):
    """A22 runtime configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="A22_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Audit Configuration
    audit_enabled: bool = False
    audit_destination: str | None = None
    audit_format: AuditFormat = AuditFormat.JSON
    audit_log_events: list[str] | None = None
    audit_include_payloads: bool = False

    # Tool Sandbox Configuration
    default_tool_timeout_ms: int = 30000
    tool_handler_timeout_seconds: float = 30.0

    # Model Gateway Configuration
    rate_limit_default_capacity: int = 60
    provider_timeout_ms: int = 30000

    def audit_config(self) -> AuditConfig:
        """Build the audit logger configuration."""
        return AuditConfig(
            enabled=self.audit_enabled,
            destination=self.audit_destination,
            format=self.audit_format,
            log_events=self.audit_log_events,
            include_payloads=self.audit_include_payloads,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
