"""Program models.

The program arrives already validated by the compiler front end. Parsing it
into these models resolves every dual-shaped value (model configs, credential
references, handler descriptors, step collections) exactly once, so the
engine and gateway never inspect raw shapes at call time.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .expressions import Expression

_EXTERNAL_HANDLER_RE = re.compile(r'external\("(.+)"\)')


def _last_segment(reference: str) -> str:
    """Normalise a dotted reference such as ``provider.openai`` to ``openai``."""
    return reference.split(".")[-1]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Model selection
# ---------------------------------------------------------------------------


class RoutingStrategy(str, Enum):
    """Strategies for choosing among primary and fallback providers."""

    FAILOVER = "failover"
    COST_OPTIMIZED = "cost_optimized"
    LATENCY_OPTIMIZED = "latency_optimized"
    ROUND_ROBIN = "round_robin"


class ModelProviderConfig(_Frozen):
    """One candidate in an advanced model configuration."""

    provider: str
    name: str
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("provider")
    @classmethod
    def normalise_provider(cls, value: str) -> str:
        return _last_segment(value)


class SimpleModel(_Frozen):
    """Direct ``provider/model`` routing with no fallback."""

    provider: str
    name: str

    @field_validator("provider")
    @classmethod
    def normalise_provider(cls, value: str) -> str:
        return _last_segment(value)

    @property
    def reference(self) -> str:
        return f"{self.provider}/{self.name}"


class AdvancedModel(_Frozen):
    """Primary model with ordered fallbacks and a routing strategy."""

    primary: ModelProviderConfig
    fallback: list[ModelProviderConfig] = Field(default_factory=list)
    strategy: RoutingStrategy = RoutingStrategy.FAILOVER

    @field_validator("strategy", mode="before")
    @classmethod
    def default_unknown_strategy(cls, value: Any) -> Any:
        if value is None:
            return RoutingStrategy.FAILOVER
        if isinstance(value, str) and value not in {s.value for s in RoutingStrategy}:
            return RoutingStrategy.FAILOVER
        return value

    @property
    def candidates(self) -> list[ModelProviderConfig]:
        return [self.primary, *self.fallback]


ModelSpec = SimpleModel | AdvancedModel


def parse_model_spec(value: Any) -> ModelSpec:
    """Resolve a model configuration into its tagged variant.

    Accepts ``"provider/model"`` strings, ``{provider, name}`` mappings and
    ``{primary, fallback, strategy}`` mappings.

    Raises:
        ValueError: If the value matches none of the accepted shapes
    """
    if isinstance(value, SimpleModel | AdvancedModel):
        return value
    if isinstance(value, str):
        provider, _, name = value.partition("/")
        return SimpleModel(provider=provider, name=name)
    if isinstance(value, dict):
        if "primary" in value:
            return AdvancedModel.model_validate(value)
        if "provider" in value and "name" in value:
            return SimpleModel.model_validate(value)
    raise ValueError(f"Unrecognized model configuration: {value!r}")


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class CredentialReference(_Frozen):
    """Reference to a credential held outside the program."""

    type: Literal["env", "secrets"]
    ref: str


class CredentialMap(_Frozen):
    """Named credential references; the first resolvable entry is used."""

    entries: dict[str, CredentialReference] = Field(default_factory=dict)


class RateLimits(_Frozen):
    requests_per_minute: int | None = Field(default=None, gt=0)
    tokens_per_minute: int | None = Field(default=None, gt=0)
    burst: int | None = Field(
        default=None,
        gt=0,
        description="Token bucket capacity (defaults to the runtime setting)",
    )


class ProviderDefinition(_Frozen):
    """Backend model provider declared by the program."""

    id: str
    type: str = "llm"
    name: str = ""
    credentials: CredentialReference | CredentialMap | None = None
    limits: RateLimits | None = None
    config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("credentials", mode="before")
    @classmethod
    def resolve_credential_shape(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        if "type" in value and "ref" in value:
            return CredentialReference.model_validate(value)
        return CredentialMap(
            entries={
                key: CredentialReference.model_validate(ref)
                for key, ref in value.items()
                if isinstance(ref, dict) and "type" in ref and "ref" in ref
            }
        )

    @property
    def display_name(self) -> str:
        return self.name or self.id


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class PolicyAllow(_Frozen):
    tools: list[str] | None = None
    workflows: list[str] | None = None
    data: list[str] | None = None
    capabilities: list[str] | None = None


class PolicyDeny(_Frozen):
    tools: list[str] | None = None
    workflows: list[str] | None = None
    data: list[str] | None = None


class ResourceLimits(_Frozen):
    max_memory_mb: float | None = None
    max_execution_time: float | None = Field(
        default=None,
        description="Maximum execution time in milliseconds",
    )
    max_tool_calls: int | None = None
    max_workflow_depth: int | None = None


class PolicyDefinition(_Frozen):
    id: str
    allow: PolicyAllow | None = None
    deny: PolicyDeny | None = None
    limits: ResourceLimits | None = None


class Permission(_Frozen):
    """Granted or required ``resource:action`` permission."""

    resource: str
    action: str


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class FieldValidation(_Frozen):
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    deny_patterns: list[str] | None = None
    min: float | None = None
    max: float | None = None


class FilesystemMode(str, Enum):
    READONLY = "readonly"
    READWRITE = "readwrite"


class SandboxConfig(_Frozen):
    """Execution bounds and I/O guards for one tool."""

    timeout_ms: int | None = Field(default=None, gt=0)
    network_allowed: bool = False
    network_hosts: list[str] | None = None
    filesystem_allowed: bool = False
    filesystem_mode: FilesystemMode = FilesystemMode.READWRITE
    filesystem_paths: list[str] | None = None


class OutputValidation(_Frozen):
    max_size_kb: float | None = None
    output_schema: dict[str, Any] | None = Field(default=None, alias="schema")


class ToolSecurityConfig(_Frozen):
    validation: dict[str, FieldValidation] | None = Field(default=None, alias="validate")
    sandbox: SandboxConfig | None = None
    output: OutputValidation | None = None


class ExternalHttpHandler(_Frozen):
    """``external("<url>")``: POST the evaluated inputs as JSON to ``url``."""

    kind: Literal["external_http"] = "external_http"
    url: str


class UnrecognizedHandler(_Frozen):
    """Handler descriptor in a format the runtime cannot invoke."""

    kind: Literal["unrecognized"] = "unrecognized"
    descriptor: str


ToolHandler = ExternalHttpHandler | UnrecognizedHandler


def parse_handler(descriptor: str) -> ToolHandler:
    """Parse a tool handler descriptor into its handler variant."""
    match = _EXTERNAL_HANDLER_RE.search(descriptor)
    if match:
        return ExternalHttpHandler(url=match.group(1))
    return UnrecognizedHandler(descriptor=descriptor)


class ToolDefinition(_Frozen):
    id: str
    handler: ToolHandler | None = None
    security: ToolSecurityConfig | None = None

    @field_validator("handler", mode="before")
    @classmethod
    def parse_handler_descriptor(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_handler(value)
        return value


# ---------------------------------------------------------------------------
# Workflows and agents
# ---------------------------------------------------------------------------


class StepDefinition(_Frozen):
    name: str
    expression: Expression


class WorkflowDefinition(_Frozen):
    id: str
    steps: list[StepDefinition] | None = None

    @field_validator("steps", mode="before")
    @classmethod
    def steps_from_mapping(cls, value: Any) -> Any:
        # Mapping form keeps declaration order: {"s1": expr, "s2": expr}
        if isinstance(value, dict):
            return [{"name": name, "expression": expr} for name, expr in value.items()]
        return value


class HandlerAction(_Frozen):
    kind: Literal["call_workflow", "use_tool"]
    target: str


class EventHandler(_Frozen):
    event: str
    actions: list[HandlerAction] = Field(default_factory=list)


class AgentDefinition(_Frozen):
    id: str
    model: ModelSpec | None = None
    system_prompt: str | None = None
    policy: str | None = None
    handlers: list[EventHandler] = Field(default_factory=list)

    @field_validator("model", mode="before")
    @classmethod
    def resolve_model(cls, value: Any) -> Any:
        if value is None:
            return None
        return parse_model_spec(value)

    @field_validator("policy", mode="before")
    @classmethod
    def resolve_policy_reference(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("id")
        if isinstance(value, str):
            return _last_segment(value)
        return value


class Program(_Frozen):
    """Validated, immutable program consumed by the runtime."""

    agents: list[AgentDefinition] = Field(default_factory=list)
    tools: list[ToolDefinition] = Field(default_factory=list)
    workflows: list[WorkflowDefinition] = Field(default_factory=list)
    providers: list[ProviderDefinition] = Field(default_factory=list)
    policies: list[PolicyDefinition] = Field(default_factory=list)

    def get_agent(self, agent_id: str) -> AgentDefinition | None:
        return next((a for a in self.agents if a.id == agent_id), None)

    def get_tool(self, tool_id: str) -> ToolDefinition | None:
        return next((t for t in self.tools if t.id == tool_id), None)

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        return next((w for w in self.workflows if w.id == workflow_id), None)
