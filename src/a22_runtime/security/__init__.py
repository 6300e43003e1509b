"""Security module: policy enforcement, sandboxing and audit logging."""

from .audit_logger import AuditLogger, NoOpAuditLogger
from .policy import PermissionChecker, PolicyEnforcer
from .sandbox import InputValidator, OutputValidator, ToolSandbox

__all__ = [
    "AuditLogger",
    "NoOpAuditLogger",
    "PermissionChecker",
    "PolicyEnforcer",
    "InputValidator",
    "OutputValidator",
    "ToolSandbox",
]
