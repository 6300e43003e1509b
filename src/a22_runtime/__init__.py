"""A22 runtime: workflow engine, model gateway and policy/sandbox enforcement."""

from .exceptions import (
    A22RuntimeError,
    NotFoundError,
    PolicyError,
    RuntimeExecutionError,
    SandboxError,
    ToolHandlerError,
    ValidationError,
)
from .models.program import Program
from .runtime import HandlerOutcome, Runtime

__version__ = "0.1.0"

__all__ = [
    "Runtime",
    "HandlerOutcome",
    "Program",
    "A22RuntimeError",
    "NotFoundError",
    "PolicyError",
    "RuntimeExecutionError",
    "SandboxError",
    "ToolHandlerError",
    "ValidationError",
]
