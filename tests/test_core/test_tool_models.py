"""Tests for the wire models."""

from core.models import ToolDescriptor, ToolResult, coerce_tool_result


class TestToolDescriptor:
    """Tests for ToolDescriptor."""

    def test_parses_wire_shape(self):
        """inputSchema is read by alias; unknown keys are ignored."""
        tool = ToolDescriptor.model_validate(
            {"name": "t", "description": "d", "inputSchema": {"type": "object"}, "annotations": {}}
        )

        assert tool.input_schema == {"type": "object"}

    def test_default_schema(self):
        """A tool without a schema gets an empty object schema."""
        assert ToolDescriptor(name="t").input_schema == {"type": "object", "properties": {}}

    def test_plugin_tag_is_not_serialized(self):
        """The owning plugin never reaches the wire."""
        tool = ToolDescriptor(name="t", plugin="acme-tools")

        assert tool.to_wire() == {
            "name": "t",
            "description": "",
            "inputSchema": {"type": "object", "properties": {}},
        }


class TestToolResult:
    """Tests for ToolResult and coerce_tool_result."""

    def test_success_omits_is_error(self):
        assert ToolResult.from_text("ok").to_wire() == {"content": [{"type": "text", "text": "ok"}]}

    def test_error_carries_is_error(self):
        assert ToolResult.from_text("bad", is_error=True).to_wire() == {
            "content": [{"type": "text", "text": "bad"}],
            "isError": True,
        }

    def test_coerce_string(self):
        assert coerce_tool_result("hi").content[0].text == "hi"

    def test_coerce_result_dict(self):
        """Result-shaped dicts keep extra content fields."""
        result = coerce_tool_result(
            {"content": [{"type": "image", "data": "AAAA", "mimeType": "image/png"}], "isError": True}
        )

        assert result.is_error
        assert result.to_wire()["content"][0] == {
            "type": "image",
            "data": "AAAA",
            "mimeType": "image/png",
        }

    def test_coerce_other_values(self):
        """Anything else is rendered as JSON text."""
        result = coerce_tool_result({"count": 2})

        assert result.content[0].text == '{\n  "count": 2\n}'
