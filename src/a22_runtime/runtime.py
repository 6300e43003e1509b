"""Runtime core.

Holds the loaded program, builds the model gateway and policy enforcers,
dispatches emitted events to agent handlers and runs workflows and agents.
The audit logger is an explicit collaborator whose lifecycle is bound to the
runtime (``async with Runtime(...)``).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from .config import Settings, get_settings
from .exceptions import NotFoundError, PolicyError, RuntimeExecutionError
from .llm_gateway.credentials import CredentialResolver
from .llm_gateway.gateway import ModelGateway
from .llm_gateway.models import Message, ProviderResponse
from .models.program import AgentDefinition, EventHandler, Program
from .security.audit_logger import AuditLogger, NoOpAuditLogger
from .security.policy import PolicyEnforcer
from .workflow.engine import WorkflowEngine

logger = structlog.get_logger(__name__)


@dataclass
class HandlerOutcome:
    """Result of one workflow call made by an event handler."""

    agent: str
    event: str
    workflow: str
    scope: dict[str, Any] | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class Runtime:
    """Executes one loaded program in this process."""

    def __init__(
        self,
        settings: Settings | None = None,
        audit_logger: AuditLogger | None = None,
        credential_resolver: CredentialResolver | None = None,
    ) -> None:
        """
        Initialize the runtime.

        Args:
            settings: Runtime settings (defaults to the cached settings)
            audit_logger: Audit logger; built from settings when omitted
            credential_resolver: Resolver for provider credentials
        """
        self._settings = settings or get_settings()
        if audit_logger is None:
            audit_config = self._settings.audit_config()
            audit_logger = (
                AuditLogger(audit_config) if audit_config.enabled else NoOpAuditLogger()
            )
        self._audit_logger = audit_logger
        self._credential_resolver = credential_resolver
        self._program: Program | None = None
        self._gateway: ModelGateway | None = None
        self._policies: dict[str, PolicyEnforcer] = {}
        self._engine = WorkflowEngine(self, audit_logger, self._settings)

    async def __aenter__(self) -> Runtime:
        await self._audit_logger.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def program(self) -> Program | None:
        return self._program

    @property
    def gateway(self) -> ModelGateway | None:
        return self._gateway

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def get_policy(self, policy_id: str) -> PolicyEnforcer | None:
        return self._policies.get(policy_id)

    async def load(self, program: Program | Mapping[str, Any]) -> None:
        """
        Load a program, replacing any previously loaded one.

        Args:
            program: Validated program, or its mapping form
        """
        if not isinstance(program, Program):
            program = Program.model_validate(program)

        if self._gateway is not None:
            await self._gateway.close()
            self._gateway = None

        self._program = program

        if program.providers:
            gateway = ModelGateway(
                program.providers,
                credential_resolver=self._credential_resolver,
                audit_logger=self._audit_logger,
                settings=self._settings,
            )
            await gateway.initialize()
            self._gateway = gateway
            await self._audit_logger.log(
                "gateway.initialized",
                metadata={"providers": [p.id for p in program.providers]},
            )

        self._policies = {policy.id: PolicyEnforcer(policy) for policy in program.policies}

        logger.info(
            "runtime_program_loaded",
            agents=len(program.agents),
            tools=len(program.tools),
            workflows=len(program.workflows),
            providers=len(program.providers),
            policies=len(program.policies),
        )

    async def emit(self, event_name: str, payload: Any) -> list[HandlerOutcome]:
        """
        Dispatch an event to every agent handler declared for it.

        Handlers run sequentially in declaration order. A failing handler
        stops its own remaining actions; other handlers still run.

        Returns:
            One outcome per workflow call attempted
        """
        program = self._require_program()
        logger.info("runtime_event_emitted", event_name=event_name)

        outcomes: list[HandlerOutcome] = []
        for agent in program.agents:
            for handler in agent.handlers:
                if handler.event != event_name:
                    continue
                logger.info("agent_handling_event", agent=agent.id, event_name=event_name)
                outcomes.extend(await self._execute_handler(agent, handler, payload))

        return outcomes

    async def call_workflow(
        self,
        name: str,
        input: Any,
        policy: PolicyEnforcer | None = None,
        agent: str = "workflow",
    ) -> dict[str, Any] | None:
        """
        Run a workflow by id.

        Args:
            name: Workflow id
            input: Workflow input
            policy: Policy of the calling agent, if any
            agent: Calling agent id (for auditing)

        Returns:
            Final workflow scope, or None if the workflow is unknown or has no steps

        Raises:
            PolicyError: If the policy denies the workflow
        """
        program = self._require_program()
        workflow = program.get_workflow(name)
        if workflow is None:
            logger.error("workflow_not_found", workflow=name)
            return None

        if policy is not None:
            try:
                policy.check_workflow_access(name)
            except PolicyError as e:
                await self._audit_logger.log_permission_denied(name, "call_workflow", agent)
                await self._audit_logger.log_policy_violation(policy.policy_id, agent, str(e))
                raise

        await self._audit_logger.log("workflow.start", workflow=name, agent=agent)

        try:
            scope = await self._engine.execute(workflow, input, policy=policy, agent=agent)
        except Exception as e:
            await self._audit_logger.log_workflow_execution(name, False, str(e))
            raise

        await self._audit_logger.log_workflow_execution(name, True)
        return scope

    async def execute_agent(
        self,
        agent_id: str,
        messages: Sequence[Message] | Sequence[dict[str, Any]],
        params: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        """
        Run one completion for an agent through the model gateway.

        The agent's policy is audited but not enforced here.

        Raises:
            NotFoundError: If the agent is not declared
            RuntimeExecutionError: If no gateway exists or the agent has no model
        """
        program = self._require_program()
        agent = program.get_agent(agent_id)
        if agent is None:
            raise NotFoundError("agent", agent_id)

        if self._gateway is None:
            raise RuntimeExecutionError(
                "Model gateway not initialized. No providers configured."
            )

        if agent.policy and agent.policy in self._policies:
            await self._audit_logger.log(
                "agent.policy_check",
                agent=agent_id,
                metadata={"policy": agent.policy},
            )

        full_messages: list[Message | dict[str, Any]] = list(messages)
        if agent.system_prompt:
            full_messages.insert(0, {"role": "system", "content": agent.system_prompt})

        await self._audit_logger.log("agent.execute", agent=agent_id)

        try:
            if agent.model is None:
                raise RuntimeExecutionError(f"Agent {agent_id} has no model configured")
            response = await self._gateway.complete(agent.model, full_messages, params)
        except Exception as e:
            await self._audit_logger.log("agent.error", False, agent=agent_id, error=str(e))
            raise

        await self._audit_logger.log(
            "agent.complete",
            agent=agent_id,
            metadata={"tokens": response.usage.total_tokens if response.usage else None},
        )
        return response

    async def close(self) -> None:
        if self._gateway is not None:
            await self._gateway.close()
        await self._audit_logger.stop()

    async def _execute_handler(
        self, agent: AgentDefinition, handler: EventHandler, payload: Any
    ) -> list[HandlerOutcome]:
        policy = self.get_policy(agent.policy) if agent.policy else None
        outcomes: list[HandlerOutcome] = []

        for action in handler.actions:
            # use_tool only declares access; it has no runtime effect
            if action.kind != "call_workflow":
                continue

            outcome = HandlerOutcome(agent=agent.id, event=handler.event, workflow=action.target)
            outcomes.append(outcome)
            try:
                outcome.scope = await self.call_workflow(
                    action.target, payload, policy=policy, agent=agent.id
                )
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    agent=agent.id,
                    event_name=handler.event,
                    workflow=action.target,
                    error=str(e),
                )
                outcome.error = e
                break

        return outcomes

    def _require_program(self) -> Program:
        if self._program is None:
            raise RuntimeExecutionError("Runtime program not loaded")
        return self._program
