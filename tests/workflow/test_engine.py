"""Tests for the workflow engine."""

import json

import httpx
import pytest
import respx

from a22_runtime.exceptions import (
    NotFoundError,
    PolicyError,
    RuntimeExecutionError,
    ToolHandlerError,
    ValidationError,
)
from a22_runtime.models.program import PolicyDefinition, WorkflowDefinition
from a22_runtime.runtime import Runtime
from a22_runtime.security.policy import PolicyEnforcer
from a22_runtime.workflow.engine import WorkflowEngine

ECHO_URL = "http://tools.test/echo"


def ref(*path):
    return {"kind": "reference", "path": list(path)}


def lit(value):
    return {"kind": "literal", "value": value}


def block(block_type, identifier, **attributes):
    return {
        "kind": "block",
        "type": block_type,
        "identifier": identifier,
        "attributes": attributes,
    }


def echo_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=json.loads(request.content))


@pytest.fixture
def program() -> dict:
    """Create a program with echo, passthrough and guarded tools."""
    return {
        "tools": [
            {"id": "echo", "handler": f'external("{ECHO_URL}")'},
            {"id": "passthrough"},
            {"id": "broken", "handler": 'external("http://tools.test/broken")'},
            {"id": "legacy", "handler": "python:module.fn"},
            {
                "id": "guarded",
                "security": {"validate": {"text": {"max_length": 5}}},
            },
        ],
        "workflows": [
            {
                "id": "echo_flow",
                "steps": {"s1": block("tool", "echo", text=ref("input", "text"))},
            },
            {
                "id": "chain",
                "steps": [
                    {"name": "first", "expression": block("tool", "passthrough", n=lit(1))},
                    {
                        "name": "second",
                        "expression": block(
                            "tool", "passthrough", prev=ref("first", "data", "n")
                        ),
                    },
                ],
            },
            {
                "id": "mixed",
                "steps": {
                    "note": lit("not an invocation"),
                    "odd": block("prompt", "x"),
                    "real": block("tool", "passthrough", v=lit(True)),
                },
            },
            {"id": "empty"},
            {"id": "missing_tool", "steps": {"s1": block("tool", "nope")}},
            {"id": "broken_flow", "steps": {"s1": block("tool", "broken")}},
            {"id": "legacy_flow", "steps": {"s1": block("tool", "legacy")}},
            {
                "id": "guarded_flow",
                "steps": {"s1": block("tool", "guarded", text=ref("input", "text"))},
            },
            {
                "id": "two_calls",
                "steps": {
                    "a": block("tool", "passthrough"),
                    "b": block("tool", "passthrough"),
                },
            },
            {
                "id": "capability_flow",
                "steps": {"cap": block("capability", "email", to=lit("ops"))},
            },
        ],
    }


@pytest.fixture
async def runtime(settings, audit_logger, program):
    """Create a runtime with the test program loaded."""
    runtime = Runtime(settings=settings, audit_logger=audit_logger)
    await runtime.load(program)
    yield runtime
    await runtime.close()


@pytest.fixture
def engine(runtime, audit_logger, settings) -> WorkflowEngine:
    """Create an engine bound to the loaded runtime."""
    return WorkflowEngine(runtime, audit_logger, settings)


def policy(**definition) -> PolicyEnforcer:
    return PolicyEnforcer(PolicyDefinition.model_validate({"id": "test-policy", **definition}))


@pytest.mark.asyncio
class TestStepExecution:
    """Test ordered step execution and scope building."""

    @respx.mock
    async def test_external_handler_echo(self, runtime, engine) -> None:
        """Test an external handler receives evaluated inputs and its JSON becomes the slot."""
        route = respx.post(ECHO_URL).mock(side_effect=echo_response)

        scope = await engine.execute(
            runtime.program.get_workflow("echo_flow"), {"text": "hi"}
        )

        assert scope == {"input": {"text": "hi"}, "s1": {"text": "hi"}}
        assert json.loads(route.calls.last.request.content) == {"text": "hi"}

    async def test_steps_see_earlier_results(self, runtime, engine) -> None:
        """Test later steps read slots written by earlier ones."""
        scope = await engine.execute(runtime.program.get_workflow("chain"), None)

        assert scope["first"] == {"success": True, "data": {"n": 1}}
        assert scope["second"] == {"success": True, "data": {"prev": 1}}
        assert scope["input"] is None

    async def test_non_invocations_and_unknown_types_are_skipped(
        self, runtime, engine
    ) -> None:
        """Test skipped steps get no slot while later steps still run."""
        scope = await engine.execute(runtime.program.get_workflow("mixed"), {})

        assert "note" not in scope
        assert "odd" not in scope
        assert scope["real"] == {"success": True, "data": {"v": True}}

    async def test_workflow_without_steps(self, runtime, engine) -> None:
        """Test a workflow with no steps yields None."""
        assert await engine.execute(runtime.program.get_workflow("empty"), {}) is None

    async def test_requires_loaded_program(self, settings, audit_logger) -> None:
        """Test execution fails when no program is loaded."""
        runtime = Runtime(settings=settings, audit_logger=audit_logger)
        engine = WorkflowEngine(runtime, audit_logger, settings)

        with pytest.raises(RuntimeExecutionError):
            await engine.execute(
                WorkflowDefinition(id="orphan", steps=[]),
                {},
            )


@pytest.mark.asyncio
class TestStepFailures:
    """Test failures abort the workflow and propagate."""

    async def test_unknown_tool(self, runtime, engine) -> None:
        """Test referencing an undeclared tool fails."""
        with pytest.raises(NotFoundError, match="Tool not found: nope"):
            await engine.execute(runtime.program.get_workflow("missing_tool"), {})

    @respx.mock
    async def test_handler_error_status(self, runtime, engine, read_audit) -> None:
        """Test non-2xx handler responses fail the step and are audited."""
        respx.post("http://tools.test/broken").mock(return_value=httpx.Response(500))

        with pytest.raises(ToolHandlerError, match="Tool handler returned 500"):
            await engine.execute(runtime.program.get_workflow("broken_flow"), {})

        record = read_audit()[-1]
        assert record["event"] == "tool.call"
        assert record["tool"] == "broken"
        assert record["success"] is False

    async def test_unrecognized_handler(self, runtime, engine) -> None:
        """Test handler descriptors in an unknown format fail."""
        with pytest.raises(ToolHandlerError, match="Unknown tool handler format"):
            await engine.execute(runtime.program.get_workflow("legacy_flow"), {})

    async def test_validation_failure(self, runtime, engine) -> None:
        """Test sandbox validation errors propagate unchanged."""
        with pytest.raises(ValidationError, match="exceeds max length"):
            await engine.execute(
                runtime.program.get_workflow("guarded_flow"), {"text": "far too long"}
            )

    async def test_successful_tool_call_is_audited(
        self, runtime, engine, read_audit
    ) -> None:
        """Test successful tool calls record tool.call."""
        await engine.execute(runtime.program.get_workflow("chain"), None, agent="helper")

        records = [r for r in read_audit() if r["event"] == "tool.call"]
        assert len(records) == 2
        assert all(r["success"] and r["agent"] == "helper" for r in records)


@pytest.mark.asyncio
class TestPolicyEnforcement:
    """Test policy checks applied by the engine."""

    async def test_denied_tool(self, runtime, engine, read_audit) -> None:
        """Test a denied tool aborts the workflow and records the violation."""
        with pytest.raises(PolicyError) as exc_info:
            await engine.execute(
                runtime.program.get_workflow("chain"),
                None,
                policy=policy(deny={"tools": ["passthrough"]}),
            )

        assert exc_info.value.rule == "deny.tools"
        events = [r["event"] for r in read_audit()]
        assert "policy.violation" in events

    async def test_tool_calls_limit(self, runtime, engine) -> None:
        """Test the per-run tool call budget is enforced."""
        with pytest.raises(PolicyError) as exc_info:
            await engine.execute(
                runtime.program.get_workflow("two_calls"),
                None,
                policy=policy(limits={"max_tool_calls": 1}),
            )

        assert exc_info.value.rule == "limits.max_tool_calls"

    async def test_tool_calls_counted_per_run(self, runtime, engine) -> None:
        """Test separate runs start with a fresh tool call count."""
        enforcer = policy(limits={"max_tool_calls": 2})
        workflow = runtime.program.get_workflow("two_calls")

        await engine.execute(workflow, None, policy=enforcer)
        await engine.execute(workflow, None, policy=enforcer)

    async def test_capability_acknowledged(self, runtime, engine) -> None:
        """Test capability steps return an acknowledgement."""
        scope = await engine.execute(
            runtime.program.get_workflow("capability_flow"),
            None,
            policy=policy(allow={"capabilities": ["email"]}),
        )

        assert scope["cap"] == {"success": True, "capability": "email"}

    async def test_capability_denied(self, runtime, engine) -> None:
        """Test capabilities outside the allow list fail."""
        with pytest.raises(PolicyError) as exc_info:
            await engine.execute(
                runtime.program.get_workflow("capability_flow"),
                None,
                policy=policy(allow={"capabilities": []}),
            )

        assert exc_info.value.rule == "allow.capabilities"


@pytest.mark.asyncio
class TestAgentSteps:
    """Test agent invocation from workflow steps."""

    @respx.mock
    async def test_agent_step(self, settings, audit_logger, monkeypatch) -> None:
        """Test an agent step completes through the gateway."""
        monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
        route = respx.post("https://api.openai.com/v1/chat/completions").mock(
            return_value=httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "Summary"}, "finish_reason": "stop"}],
                    "usage": {"prompt_tokens": 4, "completion_tokens": 1, "total_tokens": 5},
                },
            )
        )
        runtime = Runtime(settings=settings, audit_logger=audit_logger)
        await runtime.load(
            {
                "providers": [
                    {"id": "openai", "credentials": {"type": "env", "ref": "TEST_OPENAI_KEY"}}
                ],
                "agents": [{"id": "writer", "model": "openai/gpt-4"}],
                "workflows": [
                    {
                        "id": "summarize",
                        "steps": {
                            "summary": block("agent", "writer", message=ref("input", "text"))
                        },
                    }
                ],
            }
        )
        engine = WorkflowEngine(runtime, audit_logger, settings)

        scope = await engine.execute(
            runtime.program.get_workflow("summarize"), {"text": "long text"}
        )
        await runtime.close()

        assert scope["summary"]["content"] == "Summary"
        assert scope["summary"]["usage"]["total_tokens"] == 5
        body = json.loads(route.calls.last.request.content)
        assert body["messages"] == [{"role": "user", "content": "long text"}]
