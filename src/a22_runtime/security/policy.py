"""Policy enforcement.

``PolicyEnforcer`` is a stateless query object bound to one policy. Checks
never return booleans: a failed check raises ``PolicyError`` naming the
resource and the rule it violated. Limit checks compare caller-supplied
counters; the enforcer tracks nothing itself.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..exceptions import PolicyError
from ..models.program import Permission, PolicyDefinition, ResourceLimits


class PolicyEnforcer:
    """Allow/deny and resource-limit checks for one policy."""

    def __init__(self, policy: PolicyDefinition) -> None:
        self.policy = policy

    @property
    def policy_id(self) -> str:
        return self.policy.id

    def check_tool_access(self, tool_id: str) -> None:
        self._check_access(
            "tools",
            "Tool",
            tool_id,
            self.policy.deny.tools if self.policy.deny else None,
            self.policy.allow.tools if self.policy.allow else None,
        )

    def check_workflow_access(self, workflow_id: str) -> None:
        self._check_access(
            "workflows",
            "Workflow",
            workflow_id,
            self.policy.deny.workflows if self.policy.deny else None,
            self.policy.allow.workflows if self.policy.allow else None,
        )

    def check_data_access(self, data_id: str) -> None:
        self._check_access(
            "data",
            "Data",
            data_id,
            self.policy.deny.data if self.policy.deny else None,
            self.policy.allow.data if self.policy.allow else None,
        )

    def check_capability_access(self, capability_id: str) -> None:
        # Capabilities have no deny list
        self._check_access(
            "capabilities",
            "Capability",
            capability_id,
            None,
            self.policy.allow.capabilities if self.policy.allow else None,
        )

    def get_limits(self) -> ResourceLimits | None:
        return self.policy.limits

    def check_memory_limit(self, used_memory_mb: float) -> None:
        limit = self.policy.limits.max_memory_mb if self.policy.limits else None
        if limit and used_memory_mb > limit:
            raise PolicyError(
                f"Memory limit exceeded: {used_memory_mb}MB > {limit}MB",
                resource_id="memory",
                rule="limits.max_memory_mb",
            )

    def check_execution_time_limit(self, execution_time_ms: float) -> None:
        limit = self.policy.limits.max_execution_time if self.policy.limits else None
        if limit and execution_time_ms > limit:
            raise PolicyError(
                f"Execution time limit exceeded: {execution_time_ms}ms > {limit}ms",
                resource_id="execution_time",
                rule="limits.max_execution_time",
            )

    def check_tool_calls_limit(self, tool_call_count: int) -> None:
        limit = self.policy.limits.max_tool_calls if self.policy.limits else None
        if limit and tool_call_count > limit:
            raise PolicyError(
                f"Tool calls limit exceeded: {tool_call_count} > {limit}",
                resource_id="tool_calls",
                rule="limits.max_tool_calls",
            )

    def check_workflow_depth_limit(self, depth: int) -> None:
        limit = self.policy.limits.max_workflow_depth if self.policy.limits else None
        if limit and depth > limit:
            raise PolicyError(
                f"Workflow depth limit exceeded: {depth} > {limit}",
                resource_id="workflow_depth",
                rule="limits.max_workflow_depth",
            )

    @staticmethod
    def _check_access(
        kind: str,
        label: str,
        resource_id: str,
        denied: list[str] | None,
        allowed: list[str] | None,
    ) -> None:
        if denied and resource_id in denied:
            raise PolicyError(
                f'{label} "{resource_id}" is explicitly denied by policy',
                resource_id=resource_id,
                rule=f"deny.{kind}",
            )

        # No allow list means allow unless denied
        if allowed is not None and resource_id not in allowed:
            raise PolicyError(
                f'{label} "{resource_id}" is not in the allowed {kind} list',
                resource_id=resource_id,
                rule=f"allow.{kind}",
            )


class PermissionChecker:
    """Checks required ``resource:action`` permissions against granted ones.

    A granted ``admin`` action covers every action on its resource.
    """

    def __init__(self, granted_permissions: Iterable[Permission]) -> None:
        self.granted_permissions = list(granted_permissions)

    def has_permission(self, required: Permission) -> bool:
        return any(
            granted.resource == required.resource
            and granted.action in (required.action, "admin")
            for granted in self.granted_permissions
        )

    def has_all_permissions(self, required: Iterable[Permission]) -> bool:
        return all(self.has_permission(permission) for permission in required)

    def check_permissions(self, required: Iterable[Permission]) -> None:
        missing = [p for p in required if not self.has_permission(p)]
        if missing:
            missing_str = ", ".join(f"{p.resource}:{p.action}" for p in missing)
            raise PolicyError(
                f"Missing required permissions: {missing_str}",
                resource_id=missing_str,
                rule="permissions",
            )
