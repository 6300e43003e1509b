"""Root-level pytest configuration for all tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from a22_runtime.config import Settings
from a22_runtime.models.audit import AuditConfig
from a22_runtime.security.audit_logger import AuditLogger


@pytest.fixture
def settings() -> Settings:
    """Create settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def audit_log_path(tmp_path: Path) -> Path:
    """Path of the audit log file for one test."""
    return tmp_path / "audit.log"


@pytest.fixture
def audit_logger(audit_log_path: Path) -> AuditLogger:
    """Create an enabled JSON audit logger writing straight to a temp file."""
    return AuditLogger(
        AuditConfig(enabled=True, destination=f"file://{audit_log_path}")
    )


@pytest.fixture
def read_audit(audit_log_path: Path) -> Callable[[], list[dict[str, Any]]]:
    """Return a reader for the JSON audit records written so far."""

    def _read() -> list[dict[str, Any]]:
        if not audit_log_path.exists():
            return []
        return [
            json.loads(line)
            for line in audit_log_path.read_text(encoding="utf-8").splitlines()
            if line
        ]

    return _read
