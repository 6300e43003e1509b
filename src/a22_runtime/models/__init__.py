"""Program, expression and audit models."""

from .audit import AuditConfig, AuditEvent, AuditFormat
from .expressions import (
    BlockExpression,
    BlockKind,
    Expression,
    ListExpression,
    LiteralExpression,
    MapExpression,
    ReferenceExpression,
    UnknownExpression,
)
from .program import (
    AdvancedModel,
    AgentDefinition,
    CredentialMap,
    CredentialReference,
    EventHandler,
    ExternalHttpHandler,
    FieldValidation,
    FilesystemMode,
    HandlerAction,
    ModelProviderConfig,
    ModelSpec,
    OutputValidation,
    Permission,
    PolicyAllow,
    PolicyDefinition,
    PolicyDeny,
    Program,
    ProviderDefinition,
    RateLimits,
    ResourceLimits,
    RoutingStrategy,
    SandboxConfig,
    SimpleModel,
    StepDefinition,
    ToolDefinition,
    ToolHandler,
    ToolSecurityConfig,
    UnrecognizedHandler,
    WorkflowDefinition,
    parse_handler,
    parse_model_spec,
)

__all__ = [
    # Audit
    "AuditConfig",
    "AuditEvent",
    "AuditFormat",
    # Expressions
    "BlockExpression",
    "BlockKind",
    "Expression",
    "ListExpression",
    "LiteralExpression",
    "MapExpression",
    "ReferenceExpression",
    "UnknownExpression",
    # Program
    "AdvancedModel",
    "AgentDefinition",
    "CredentialMap",
    "CredentialReference",
    "EventHandler",
    "ExternalHttpHandler",
    "FieldValidation",
    "FilesystemMode",
    "HandlerAction",
    "ModelProviderConfig",
    "ModelSpec",
    "OutputValidation",
    "Permission",
    "PolicyAllow",
    "PolicyDefinition",
    "PolicyDeny",
    "Program",
    "ProviderDefinition",
    "RateLimits",
    "ResourceLimits",
    "RoutingStrategy",
    "SandboxConfig",
    "SimpleModel",
    "StepDefinition",
    "ToolDefinition",
    "ToolHandler",
    "ToolSecurityConfig",
    "UnrecognizedHandler",
    "WorkflowDefinition",
    "parse_handler",
    "parse_model_spec",
]
