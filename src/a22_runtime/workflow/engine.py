"""Workflow execution engine.

Steps run strictly in declaration order: a step may read the scope slots of
every step before it. The first failing step aborts the workflow and its
error propagates to the caller; the partial scope is discarded.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from ..config import Settings, get_settings
from ..exceptions import NotFoundError, PolicyError, RuntimeExecutionError
from ..models.expressions import BlockExpression, BlockKind
from ..models.program import Program, StepDefinition, WorkflowDefinition
from ..security.audit_logger import AuditLogger
from ..security.policy import PolicyEnforcer
from ..security.sandbox import ToolSandbox
from .expressions import evaluate_attributes
from .handlers import call_tool_handler

if TYPE_CHECKING:
    from ..runtime import Runtime

logger = structlog.get_logger(__name__)

# Marks steps that were skipped and therefore get no scope slot
_SKIPPED = object()


@dataclass
class WorkflowRun:
    """Mutable state of one workflow invocation."""

    workflow_id: str
    scope: dict[str, Any]
    policy: PolicyEnforcer | None = None
    agent: str = "workflow"
    tool_calls: int = 0
    started_at: float = field(default_factory=time.time)


class WorkflowEngine:
    """Executes a workflow's steps against a fresh scope."""

    def __init__(
        self,
        runtime: Runtime,
        audit_logger: AuditLogger,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            runtime: Runtime providing the program and agent execution
            audit_logger: Audit logger for tool call events
            settings: Runtime settings (defaults to the cached settings)
        """
        self._runtime = runtime
        self._audit_logger = audit_logger
        self._settings = settings or get_settings()

    async def execute(
        self,
        workflow: WorkflowDefinition,
        input: Any,
        policy: PolicyEnforcer | None = None,
        agent: str = "workflow",
    ) -> dict[str, Any] | None:
        """
        Execute a workflow.

        Args:
            workflow: Workflow definition
            input: Value bound to ``input`` in the scope
            policy: Policy applied to tool and capability steps, if any
            agent: Agent on whose behalf the workflow runs (for auditing)

        Returns:
            Final scope, or None if the workflow declares no steps

        Raises:
            NotFoundError: If a tool step references an undeclared tool
            ValidationError, SandboxError, PolicyError, ToolHandlerError:
                From the failing step
        """
        program = self._runtime.program
        if program is None:
            raise RuntimeExecutionError("Runtime program not loaded")

        if workflow.steps is None:
            logger.info("workflow_has_no_steps", workflow=workflow.id)
            return None

        run = WorkflowRun(
            workflow_id=workflow.id,
            scope={"input": input},
            policy=policy,
            agent=agent,
        )

        with structlog.contextvars.bound_contextvars(workflow=workflow.id):
            logger.info("workflow_started", steps=len(workflow.steps))

            try:
                for step in workflow.steps:
                    with structlog.contextvars.bound_contextvars(step=step.name):
                        result = await self._execute_step(step, run, program)
                    if result is not _SKIPPED:
                        run.scope[step.name] = result
            except Exception as e:
                logger.error(
                    "workflow_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            logger.info(
                "workflow_completed",
                duration_ms=int((time.time() - run.started_at) * 1000),
            )

        return run.scope

    async def _execute_step(
        self, step: StepDefinition, run: WorkflowRun, program: Program
    ) -> Any:
        expression = step.expression
        if not isinstance(expression, BlockExpression):
            logger.warning(
                "workflow_step_not_invocation",
                step=step.name,
                kind=expression.kind,
            )
            return _SKIPPED

        match expression.block_kind:
            case BlockKind.TOOL:
                return await self._execute_tool(expression, run, program)
            case BlockKind.AGENT:
                return await self._execute_agent(expression, run)
            case BlockKind.CAPABILITY:
                return await self._execute_capability(expression, run)
            case _:
                logger.warning(
                    "workflow_step_unknown_type",
                    step=step.name,
                    step_type=expression.type,
                )
                return _SKIPPED

    async def _execute_tool(
        self, block: BlockExpression, run: WorkflowRun, program: Program
    ) -> Any:
        tool_id = block.identifier
        tool = program.get_tool(tool_id)
        if tool is None:
            raise NotFoundError("tool", tool_id)

        inputs = evaluate_attributes(block.attributes, run.scope)
        logger.info("tool_step_executing", tool=tool_id, inputs=sorted(inputs))

        sandbox = ToolSandbox(
            tool.security,
            default_timeout_ms=self._settings.default_tool_timeout_ms,
        )
        handler_timeout = self._settings.tool_handler_timeout_seconds

        try:
            if run.policy is not None:
                run.policy.check_tool_access(tool_id)
                run.tool_calls += 1
                run.policy.check_tool_calls_limit(run.tool_calls)

            result = await sandbox.execute(
                lambda tool_inputs: call_tool_handler(
                    tool.handler, tool_inputs, handler_timeout
                ),
                inputs,
            )
        except PolicyError as e:
            await self._audit_logger.log_policy_violation(
                run.policy.policy_id, run.agent, str(e)
            )
            await self._audit_logger.log_tool_call(tool_id, run.agent, False, str(e))
            raise
        except Exception as e:
            await self._audit_logger.log_tool_call(tool_id, run.agent, False, str(e))
            raise

        await self._audit_logger.log_tool_call(tool_id, run.agent, True)
        return result

    async def _execute_agent(self, block: BlockExpression, run: WorkflowRun) -> dict[str, Any]:
        agent_id = block.identifier
        inputs = evaluate_attributes(block.attributes, run.scope)
        logger.info("agent_step_executing", agent=agent_id, inputs=sorted(inputs))

        messages: list[dict[str, Any]] = []
        if inputs.get("message"):
            messages.append({"role": "user", "content": inputs["message"]})
        elif inputs.get("messages"):
            messages.extend(inputs["messages"])

        response = await self._runtime.execute_agent(agent_id, messages, inputs.get("params"))

        return {
            "content": response.content,
            "usage": response.usage.model_dump() if response.usage else None,
        }

    async def _execute_capability(
        self, block: BlockExpression, run: WorkflowRun
    ) -> dict[str, Any]:
        capability_id = block.identifier
        inputs = evaluate_attributes(block.attributes, run.scope)
        logger.info(
            "capability_step_executing",
            capability=capability_id,
            inputs=sorted(inputs),
        )

        if run.policy is not None:
            run.policy.check_capability_access(capability_id)

        # Capability invocation has no side effect yet; acknowledge only
        return {"success": True, "capability": capability_id}
