"""
Tests for the Cortex MCP server.

Covers tool definitions, the call_tool dispatcher, input validation and error
handling. Calls run against an in-memory Cortex injected as the cached
server instance.
"""

import json
from unittest.mock import patch

import pytest
from jsonschema import Draft7Validator
from mcp.types import TextContent, Tool

from cortex.mcp.server import (
    TOOLS,
    call_tool,
    get_cortex,
    handle_tool_error,
    list_tools,
    set_db_path,
    validate_tool_input,
)
from cortex.mcp.tool_definitions import TOOL_SCHEMAS
from cortex.protocols import NotFoundError
from cortex.types import FailureSeverity, MemoryInput, MemoryType, RiskPosture


@pytest.fixture
def server_cortex(cortex):
    """Install the test Cortex as the server's cached instance."""
    get_cortex._instance = cortex
    yield cortex
    if hasattr(get_cortex, "_instance"):
        delattr(get_cortex, "_instance")


async def call(name, arguments):
    result = await call_tool(name, arguments)
    assert len(result) == 1
    assert isinstance(result[0], TextContent)
    return result[0].text


async def call_json(name, arguments):
    return json.loads(await call(name, arguments))


class TestToolDefinitions:
    @pytest.mark.asyncio
    async def test_list_tools(self):
        tools = await list_tools()

        assert all(isinstance(tool, Tool) for tool in tools)
        assert {tool.name for tool in tools} == {
            "cortex_prepare_context",
            "identity_create",
            "identity_load",
            "identity_history",
            "memory_record",
            "memory_retrieve",
            "memory_reinforce",
            "memory_decay",
            "memory_cleanup",
            "failure_record",
            "failure_check",
            "failure_retrieve",
            "failure_set_active",
        }

    def test_definitions_have_required_fields(self):
        for tool in TOOLS:
            assert tool.description
            assert tool.inputSchema["type"] == "object"
            assert "properties" in tool.inputSchema

    def test_every_tool_has_a_valid_schema(self):
        assert set(TOOL_SCHEMAS) == {tool.name for tool in TOOLS}
        for schema in TOOL_SCHEMAS.values():
            Draft7Validator.check_schema(schema)

    def test_enums_match_types(self):
        by_name = {tool.name: tool for tool in TOOLS}
        assert by_name["memory_record"].inputSchema["properties"]["type"]["enum"] == [
            t.value for t in MemoryType
        ]
        assert by_name["failure_record"].inputSchema["properties"]["severity"]["enum"] == [
            s.value for s in FailureSeverity
        ]
        assert by_name["identity_create"].inputSchema["properties"]["risk_posture"]["enum"] == [
            r.value for r in RiskPosture
        ]


class TestValidation:
    def test_unknown_tool(self):
        with pytest.raises(ValueError, match="Unknown tool: nope"):
            validate_tool_input("nope", {})

    def test_arguments_must_be_object(self):
        with pytest.raises(ValueError, match="arguments must be an object"):
            validate_tool_input("memory_decay", [])

    def test_schema_errors_name_the_path(self):
        with pytest.raises(ValueError, match="Schema validation failed at confidence"):
            validate_tool_input(
                "memory_record", {"type": "lesson", "content": "x", "confidence": 3}
            )
        with pytest.raises(ValueError, match="'query' is a required property"):
            validate_tool_input("cortex_prepare_context", {"identity_id": "x"})

    def test_sanitizer_coerces(self):
        args = validate_tool_input(
            "memory_record", {"type": "warning", "content": "  beware  ", "tags": ["a", ""]}
        )
        assert args["memory_type"] == MemoryType.WARNING
        assert args["tags"] == ["a"]
        assert args["confidence"] is None

    def test_sanitizer_rejects_blank_strings(self):
        with pytest.raises(ValueError, match="content cannot be empty"):
            validate_tool_input("memory_record", {"type": "lesson", "content": "   "})

    def test_retrieve_defaults(self):
        args = validate_tool_input("memory_retrieve", {})
        assert args["limit"] == 20
        assert args["memory_type"] is None


class TestErrorHandling:
    def test_value_error(self):
        result = handle_tool_error(ValueError("bad"), "t", {})
        assert result[0].text == "Invalid input: bad"

    def test_not_found(self):
        result = handle_tool_error(NotFoundError("Memory", "m1"), "t", {})
        assert result[0].text == "Not found: Memory m1"

    def test_unexpected_error_is_hidden(self, caplog):
        result = handle_tool_error(RuntimeError("secret detail"), "t", {"a": 1})
        assert result[0].text == "Internal server error"
        assert "Internal error in tool t" in caplog.text

    @pytest.mark.asyncio
    async def test_storage_failure_becomes_internal_error(self, server_cortex):
        with patch.object(server_cortex.memory, "apply_decay", side_effect=RuntimeError("disk")):
            assert await call("memory_decay", {}) == "Internal server error"


class TestIdentityTools:
    @pytest.mark.asyncio
    async def test_create_load_history(self, server_cortex):
        created = await call_json(
            "identity_create",
            {
                "name": "Agent",
                "risk_posture": "conservative",
                "values": [{"name": "care", "description": "be careful", "priority": 5}],
                "invariants": [{"rule": "no secrets", "rationale": "they leak"}],
                "style_constraints": [{"aspect": "tone", "constraint": "plain"}],
            },
        )
        assert created["version"] == 1
        assert created["invariants"][0]["description"] == "no secrets"

        loaded = await call_json("identity_load", {"identity_id": created["id"]})
        assert loaded == created

        history = await call_json("identity_history", {"identity_id": created["id"]})
        assert [h["version"] for h in history] == [1]
        assert history[0]["change_reason"] == "initial"

    @pytest.mark.asyncio
    async def test_load_missing(self, server_cortex):
        assert await call("identity_load", {"identity_id": "ghost"}) == "Not found: Identity ghost"
        assert await call("identity_history", {"identity_id": "ghost"}) == (
            "Not found: Identity ghost"
        )

    @pytest.mark.asyncio
    async def test_invalid_identity(self, server_cortex):
        text = await call(
            "identity_create",
            {
                "name": "Agent",
                "risk_posture": "moderate",
                "values": [{"name": "care", "description": "d", "priority": -1}],
            },
        )
        assert text.startswith("Invalid input: Invalid identity input")
        assert "values[0].priority must be a non-negative number" in text


class TestMemoryTools:
    @pytest.mark.asyncio
    async def test_record_reinforce_retrieve(self, server_cortex):
        first = await call_json(
            "memory_record", {"type": "lesson", "content": "Always validate input", "confidence": 0.8}
        )
        assert first["action"] == "created"
        assert first["similarity"] is None

        again = await call_json("memory_record", {"type": "lesson", "content": "always validate input"})
        assert again["action"] == "reinforced"
        assert again["similarity"] == 1.0
        assert again["memory"]["id"] == first["memory"]["id"]

        found = await call_json("memory_retrieve", {"query": "validate input"})
        assert found["total_count"] == 1
        assert found["memories"][0]["confidence"] == pytest.approx(0.9)

        result = await call_json("memory_reinforce", {"memory_id": first["memory"]["id"]})
        assert result["new_confidence"] == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_reinforce_missing(self, server_cortex):
        assert await call("memory_reinforce", {"memory_id": "nope"}) == "Not found: Memory nope"

    @pytest.mark.asyncio
    async def test_decay_and_cleanup(self, server_cortex, clock):
        await call("memory_record", {"type": "warning", "content": "old news", "confidence": 0.3})
        clock.advance(days=3)

        assert await call_json("memory_decay", {}) == {"decayed": 1}
        # effective strength 0.3 * 0.85 = 0.255 stays above the 0.2 floor
        assert await call_json("memory_cleanup", {}) == {"deleted": []}


class TestFailureTools:
    @pytest.mark.asyncio
    async def test_record_check_toggle(self, server_cortex):
        recorded = await call_json(
            "failure_record",
            {"pattern": "rm -rf /", "context": "shell", "reason": "destroys data", "severity": "hard"},
        )
        pattern_id = recorded["pattern"]["id"]
        assert recorded["action"] == "created"

        check = await call_json("failure_check", {"text": "rm -rf /"})
        assert check["blocked"] is True
        assert check["severity"] == "hard"

        off = await call_json("failure_set_active", {"pattern_id": pattern_id, "active": False})
        assert off["active"] is False
        assert (await call_json("failure_check", {"text": "rm -rf /"}))["blocked"] is False

        inactive = await call_json("failure_retrieve", {"active": False})
        assert [p["id"] for p in inactive["patterns"]] == [pattern_id]

    @pytest.mark.asyncio
    async def test_default_severity(self, server_cortex):
        recorded = await call_json(
            "failure_record", {"pattern": "long answers", "context": "chat", "reason": "skimmed"}
        )
        assert recorded["pattern"]["severity"] == "soft"

    @pytest.mark.asyncio
    async def test_set_active_missing(self, server_cortex):
        text = await call("failure_set_active", {"pattern_id": "nope", "active": True})
        assert text == "Not found: Failure pattern nope"


class TestPrepareContextTool:
    @pytest.fixture
    def identity_id(self, server_cortex, identity):
        server_cortex.memory.record(
            MemoryInput(memory_type=MemoryType.LESSON, content="Always validate input", confidence=0.8)
        )
        return identity.id

    @pytest.mark.asyncio
    async def test_success(self, identity_id):
        data = await call_json(
            "cortex_prepare_context", {"identity_id": identity_id, "query": "validate input"}
        )
        assert data["success"] is True
        assert data["blocked"] is False
        assert data["identity"]["values"][0]["name"] == "safety"
        assert data["memories"]["lessons"] == [
            {"content": "Always validate input", "confidence": 0.8}
        ]
        assert data["failures"]["blocked"] is False

    @pytest.mark.asyncio
    async def test_blocked(self, identity_id):
        await call(
            "failure_record",
            {"pattern": "validate input", "context": "api", "reason": "upstream", "severity": "hard"},
        )
        data = await call_json(
            "cortex_prepare_context", {"identity_id": identity_id, "query": "validate input"}
        )
        assert data["success"] is False
        assert data["blocked"] is True
        assert data["reason"] == "upstream"
        assert data["matched_patterns"][0]["pattern"] == "validate input"

    @pytest.mark.asyncio
    async def test_error_result(self, server_cortex):
        data = await call_json("cortex_prepare_context", {"identity_id": "ghost", "query": "q"})
        assert data == {"success": False, "blocked": False, "error": "Identity not found: ghost"}


class TestServerInstance:
    def test_set_db_path_clears_cache(self, tmp_path):
        get_cortex._instance = "stale"
        try:
            set_db_path(tmp_path / "mcp.db")
            assert not hasattr(get_cortex, "_instance")

            instance = get_cortex()
            assert get_cortex() is instance
            assert instance.storage.db_path == tmp_path / "mcp.db"
        finally:
            set_db_path(None)
