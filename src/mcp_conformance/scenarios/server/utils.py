"""Utility methods: ping and logging level."""

from ... import spec_references as refs
from .structural import Inspection, StructuralCheckScenario


class PingScenario(StructuralCheckScenario):
    name = "ping"
    description = """Test ping utility.

**Server Implementation Requirements:**

**Endpoint**: `ping`

**Requirements**:
- Respond promptly with an empty result `{}`"""

    check_id = "ping"
    check_name = "Ping"
    check_description = "Server responds to ping with an empty result"
    spec_references = (refs.MCP_PING,)

    async def exercise(self, session) -> Inspection:
        result = await session.request("ping")
        errors = ["Expected empty object {} response"] if result else []
        return errors, {"result": result}


class LoggingSetLevelScenario(StructuralCheckScenario):
    name = "logging-set-level"
    description = """Test setting logging level.

**Server Implementation Requirements:**

**Endpoint**: `logging/setLevel`

**Requirements**:
- Accept log level setting
- Filter subsequent log notifications based on level
- Return empty object `{}`"""

    check_id = "logging-set-level"
    check_name = "LoggingSetLevel"
    check_description = "Server accepts logging level setting"
    spec_references = (refs.MCP_LOGGING,)

    async def exercise(self, session) -> Inspection:
        result = await session.request("logging/setLevel", {"level": "info"})
        errors = ["Expected empty object {} response"] if result else []
        return errors, {"result": result}
