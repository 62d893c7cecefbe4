"""Tool listing and invocation against a live server."""

from ... import spec_references as refs
from .structural import Inspection, StructuralCheckScenario

SIMPLE_TEXT_TOOL = "test_simple_text"


class ToolsListScenario(StructuralCheckScenario):
    name = "tools-list"
    description = """Test listing available tools.

**Server Implementation Requirements:**

**Endpoint**: `tools/list`

**Requirements**:
- Return array of all available tools
- Each tool MUST have:
  - `name` (string)
  - `description` (string)
  - `inputSchema` (valid JSON Schema object)"""

    check_id = "tools-list"
    check_name = "ToolsList"
    check_description = "Server lists available tools with valid structure"
    spec_references = (refs.MCP_TOOLS_LIST,)

    async def exercise(self, session) -> Inspection:
        result = await session.request("tools/list")
        tools = result.get("tools")
        errors = []
        if tools is None:
            errors.append("Missing tools array")
            tools = []
        elif not isinstance(tools, list):
            errors.append("tools is not an array")
            tools = []

        for index, tool in enumerate(tools):
            if not isinstance(tool, dict):
                errors.append(f"Tool {index}: not an object")
                continue
            if not tool.get("name"):
                errors.append(f"Tool {index}: missing name")
            if not tool.get("description"):
                errors.append(f"Tool {index}: missing description")
            if not isinstance(tool.get("inputSchema"), dict):
                errors.append(f"Tool {index}: missing inputSchema")

        names = [tool.get("name") for tool in tools if isinstance(tool, dict)]
        return errors, {"toolCount": len(tools), "tools": names}


class ToolsCallSimpleTextScenario(StructuralCheckScenario):
    name = "tools-call-simple-text"
    description = f"""Test calling a tool that returns simple text.

**Server Implementation Requirements:**

Implement tool `{SIMPLE_TEXT_TOOL}` with no arguments that returns:

```json
{{
  "content": [
    {{
      "type": "text",
      "text": "This is a simple text response for testing."
    }}
  ]
}}
```"""

    check_id = "tools-call-simple-text"
    check_name = "ToolsCallSimpleText"
    check_description = "Tool returns simple text content"
    spec_references = (refs.MCP_TOOLS_CALL,)

    async def exercise(self, session) -> Inspection:
        result = await session.request("tools/call", {"name": SIMPLE_TEXT_TOOL, "arguments": {}})
        content = result.get("content")
        errors = []
        if content is None:
            errors.append("Missing content array")
        elif not isinstance(content, list):
            errors.append("content is not an array")
        elif not content:
            errors.append("content array is empty")

        items = content if isinstance(content, list) else []
        text_item = next((c for c in items if isinstance(c, dict) and c.get("type") == "text"), None)
        if text_item is None:
            errors.append("No text content found")
        elif not text_item.get("text"):
            errors.append("Text content missing text field")
        return errors, {"result": result}
