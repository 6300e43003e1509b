"""Runtime exception hierarchy.

Validation, sandbox and policy errors are raised at the violation point and
propagate unchanged through step, workflow and event dispatch.
"""

from __future__ import annotations


class A22RuntimeError(Exception):
    """Base exception for all runtime errors."""

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Error message describing what went wrong
        """
        self.message = message
        super().__init__(message)


class ValidationError(A22RuntimeError):
    """Tool input or output does not satisfy its declared rules."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class SandboxError(A22RuntimeError):
    """Sandbox timeout or disallowed network/filesystem access."""


class PolicyError(A22RuntimeError):
    """Exception raised when a policy denies a resource or a limit is exceeded."""

    def __init__(self, message: str, resource_id: str, rule: str) -> None:
        """Initialize the policy error.

        Args:
            message: Description of the violation
            resource_id: Resource (tool, workflow, data, capability or limit name)
            rule: Rule that was violated (e.g. 'deny.tools', 'limits.max_tool_calls')
        """
        self.resource_id = resource_id
        self.rule = rule
        super().__init__(message)


class RuntimeExecutionError(A22RuntimeError):
    """Unclassified execution failure."""


class NotFoundError(RuntimeExecutionError):
    """A referenced agent, tool, workflow or provider does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class ToolHandlerError(RuntimeExecutionError):
    """Tool handler is unrecognized or its invocation failed."""
