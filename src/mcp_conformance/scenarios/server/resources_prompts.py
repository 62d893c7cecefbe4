"""Resource and prompt listing against a live server."""

from ... import spec_references as refs
from .structural import Inspection, StructuralCheckScenario


def _inspect_list(result, key: str, label: str, required_fields):
    items = result.get(key)
    errors = []
    if items is None:
        return [f"Missing {key} array"], []
    if not isinstance(items, list):
        return [f"{key} is not an array"], []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append(f"{label} {index}: not an object")
            continue
        for field_name in required_fields:
            if not item.get(field_name):
                errors.append(f"{label} {index}: missing {field_name}")
    return errors, items


class ResourcesListScenario(StructuralCheckScenario):
    name = "resources-list"
    description = """Test listing available resources.

**Server Implementation Requirements:**

**Endpoint**: `resources/list`

**Requirements**:
- Return array of all available **direct resources** (not templates)
- Each resource MUST have:
  - `uri` (string)
  - `name` (string)"""

    check_id = "resources-list"
    check_name = "ResourcesList"
    check_description = "Server lists available resources with valid structure"
    spec_references = (refs.MCP_RESOURCES_LIST,)

    async def exercise(self, session) -> Inspection:
        result = await session.request("resources/list")
        errors, items = _inspect_list(result, "resources", "Resource", ("uri", "name"))
        return errors, {"resourceCount": len(items), "resources": [r.get("uri") for r in items if isinstance(r, dict)]}


class PromptsListScenario(StructuralCheckScenario):
    name = "prompts-list"
    description = """Test listing available prompts.

**Server Implementation Requirements:**

**Endpoint**: `prompts/list`

**Requirements**:
- Return array of all available prompts
- Each prompt MUST have:
  - `name` (string)"""

    check_id = "prompts-list"
    check_name = "PromptsList"
    check_description = "Server lists available prompts with valid structure"
    spec_references = (refs.MCP_PROMPTS_LIST,)

    async def exercise(self, session) -> Inspection:
        result = await session.request("prompts/list")
        errors, items = _inspect_list(result, "prompts", "Prompt", ("name",))
        return errors, {"promptCount": len(items), "prompts": [p.get("name") for p in items if isinstance(p, dict)]}
