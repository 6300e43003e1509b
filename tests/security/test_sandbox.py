"""Tests for tool sandbox validation, timeouts and I/O guards."""

import asyncio

import pytest

from a22_runtime.exceptions import SandboxError, ValidationError
from a22_runtime.models.program import (
    FieldValidation,
    OutputValidation,
    SandboxConfig,
    ToolSecurityConfig,
)
from a22_runtime.security.sandbox import InputValidator, OutputValidator, ToolSandbox


async def echo_tool(inputs):
    return {"echo": inputs}


class TestInputValidator:
    """Test per-field input validation."""

    @pytest.fixture
    def validator(self) -> InputValidator:
        """Create a validator with string and numeric rules."""
        return InputValidator(
            {
                "query": FieldValidation(
                    min_length=2,
                    max_length=10,
                    pattern=r"^[a-z ]+$",
                    deny_patterns=["drop table"],
                ),
                "count": FieldValidation(min=1, max=5),
            }
        )

    def test_valid_inputs(self, validator) -> None:
        """Test inputs within every rule pass."""
        validator.validate({"query": "hello", "count": 3})

    def test_max_length(self, validator) -> None:
        """Test strings longer than max_length fail."""
        with pytest.raises(ValidationError, match="exceeds max length") as exc_info:
            validator.validate({"query": "a" * 11})

        assert exc_info.value.field == "query"

    def test_min_length(self, validator) -> None:
        """Test strings shorter than min_length fail."""
        with pytest.raises(ValidationError, match="below min length"):
            validator.validate({"query": "a"})

    def test_pattern(self, validator) -> None:
        """Test strings not matching the pattern fail."""
        with pytest.raises(ValidationError, match="does not match pattern"):
            validator.validate({"query": "Hello!"})

    def test_deny_pattern(self) -> None:
        """Test strings matching a denied pattern fail."""
        validator = InputValidator(
            {"query": FieldValidation(deny_patterns=[r"\.\./", "drop table"])}
        )

        with pytest.raises(ValidationError, match="matches denied pattern"):
            validator.validate({"query": "please drop table users"})

    def test_numeric_bounds(self, validator) -> None:
        """Test numbers outside min/max fail."""
        with pytest.raises(ValidationError, match="below minimum"):
            validator.validate({"count": 0})
        with pytest.raises(ValidationError, match="exceeds maximum"):
            validator.validate({"count": 5.5})

    def test_boolean_is_not_numeric(self, validator) -> None:
        """Test booleans skip numeric bounds."""
        validator.validate({"count": False})

    def test_undeclared_and_missing_fields_ignored(self, validator) -> None:
        """Test only present, declared fields are checked."""
        validator.validate({"other": "x" * 1000})
        validator.validate({})

    def test_type_mismatch_ignored(self, validator) -> None:
        """Test string rules do not apply to numbers."""
        validator.validate({"query": 12345678901})


class TestOutputValidator:
    """Test output size validation."""

    def test_output_within_limit(self) -> None:
        """Test small outputs pass."""
        OutputValidator(OutputValidation(max_size_kb=1)).validate({"ok": True})

    def test_output_too_large(self) -> None:
        """Test outputs above max_size_kb fail."""
        validator = OutputValidator(OutputValidation(max_size_kb=1))

        with pytest.raises(ValidationError, match="Output size exceeds limit"):
            validator.validate({"data": "x" * 2048})

    def test_schema_is_accepted_but_not_enforced(self) -> None:
        """Test a declared schema does not reject output."""
        config = OutputValidation.model_validate({"schema": {"type": "string"}})

        OutputValidator(config).validate({"not": "a string"})


@pytest.mark.asyncio
class TestToolSandboxExecution:
    """Test sandboxed execution."""

    async def test_runs_directly_without_sandbox_config(self) -> None:
        """Test tools without security config run unchanged."""
        result = await ToolSandbox().execute(echo_tool, {"a": 1})

        assert result == {"echo": {"a": 1}}

    async def test_input_validation_runs_before_tool(self) -> None:
        """Test invalid inputs never reach the tool."""
        calls = []

        async def tool(inputs):
            calls.append(inputs)
            return inputs

        sandbox = ToolSandbox(
            ToolSecurityConfig(validation={"q": FieldValidation(max_length=3)})
        )

        with pytest.raises(ValidationError):
            await sandbox.execute(tool, {"q": "too long"})

        assert calls == []

    async def test_timeout(self) -> None:
        """Test tools exceeding timeout_ms fail with SandboxError."""

        async def slow_tool(inputs):
            await asyncio.sleep(1)
            return inputs

        sandbox = ToolSandbox(ToolSecurityConfig(sandbox=SandboxConfig(timeout_ms=50)))

        with pytest.raises(SandboxError, match="Tool execution timeout after 50ms"):
            await sandbox.execute(slow_tool, {})

    async def test_default_timeout_applies_when_unset(self) -> None:
        """Test the default timeout bounds a sandboxed tool without timeout_ms."""

        async def slow_tool(inputs):
            await asyncio.sleep(1)

        sandbox = ToolSandbox(
            ToolSecurityConfig(sandbox=SandboxConfig()), default_timeout_ms=20
        )

        with pytest.raises(SandboxError, match="after 20ms"):
            await sandbox.execute(slow_tool, {})

    async def test_fast_tool_within_timeout(self) -> None:
        """Test tools finishing in time return their output."""
        sandbox = ToolSandbox(ToolSecurityConfig(sandbox=SandboxConfig(timeout_ms=1000)))

        assert await sandbox.execute(echo_tool, {"a": 1}) == {"echo": {"a": 1}}

    async def test_output_validated(self) -> None:
        """Test oversized output fails after execution."""

        async def big_tool(inputs):
            return "x" * 4096

        sandbox = ToolSandbox(ToolSecurityConfig(output=OutputValidation(max_size_kb=1)))

        with pytest.raises(ValidationError):
            await sandbox.execute(big_tool, {})


class TestToolSandboxGuards:
    """Test network and filesystem guards."""

    def test_guards_allow_without_sandbox_config(self) -> None:
        """Test no sandbox config means no restrictions."""
        sandbox = ToolSandbox()

        sandbox.check_network_access("example.com")
        sandbox.check_filesystem_access("/etc/passwd", write=True)
        assert sandbox.get_config() is None

    def test_network_disabled(self) -> None:
        """Test network access is denied by default in a sandbox."""
        sandbox = ToolSandbox(ToolSecurityConfig(sandbox=SandboxConfig()))

        with pytest.raises(SandboxError, match="Network access is not allowed"):
            sandbox.check_network_access("example.com")

    def test_network_host_allow_list(self) -> None:
        """Test hosts match exactly or as subdomains."""
        sandbox = ToolSandbox(
            ToolSecurityConfig(
                sandbox=SandboxConfig(network_allowed=True, network_hosts=["example.com"])
            )
        )

        sandbox.check_network_access("example.com")
        sandbox.check_network_access("api.example.com")
        with pytest.raises(SandboxError, match='"badexample.com" is not allowed'):
            sandbox.check_network_access("badexample.com")

    def test_network_any_host(self) -> None:
        """Test network_allowed without hosts allows any host."""
        sandbox = ToolSandbox(
            ToolSecurityConfig(sandbox=SandboxConfig(network_allowed=True))
        )

        sandbox.check_network_access("anywhere.test")

    def test_filesystem_disabled(self) -> None:
        """Test filesystem access is denied by default in a sandbox."""
        sandbox = ToolSandbox(ToolSecurityConfig(sandbox=SandboxConfig()))

        with pytest.raises(SandboxError, match="Filesystem access is not allowed"):
            sandbox.check_filesystem_access("/tmp/data")

    def test_filesystem_readonly(self) -> None:
        """Test writes fail in readonly mode while reads pass."""
        sandbox = ToolSandbox(
            ToolSecurityConfig(
                sandbox=SandboxConfig(filesystem_allowed=True, filesystem_mode="readonly")
            )
        )

        sandbox.check_filesystem_access("/tmp/data")
        with pytest.raises(SandboxError, match="readonly mode"):
            sandbox.check_filesystem_access("/tmp/data", write=True)

    def test_filesystem_path_prefixes(self) -> None:
        """Test paths must start with an allowed prefix."""
        sandbox = ToolSandbox(
            ToolSecurityConfig(
                sandbox=SandboxConfig(filesystem_allowed=True, filesystem_paths=["/srv/data"])
            )
        )

        sandbox.check_filesystem_access("/srv/data/report.csv", write=True)
        with pytest.raises(SandboxError, match="Allowed paths: /srv/data"):
            sandbox.check_filesystem_access("/etc/passwd")
