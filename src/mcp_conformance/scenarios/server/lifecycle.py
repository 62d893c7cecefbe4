"""Initialization handshake against a live server."""

from ... import spec_references as refs
from .structural import Inspection, StructuralCheckScenario


class ServerInitializeScenario(StructuralCheckScenario):
    name = "server-initialize"
    description = """Test basic server initialization handshake.

**Server Implementation Requirements:**

**Endpoint**: `initialize`

**Requirements**:
- Accept `initialize` request with client info and capabilities
- Return valid initialize response with server info, protocol version, and capabilities
- Accept `initialized` notification from client after handshake"""

    check_id = "server-initialize"
    check_name = "ServerInitialize"
    check_description = "Server responds to initialize request with valid structure"
    spec_references = (refs.MCP_INITIALIZE,)

    async def exercise(self, session) -> Inspection:
        errors = []
        if not isinstance(session.server_info, dict) or not session.server_info.get("name"):
            errors.append("serverInfo missing name")
        if not isinstance(session.capabilities, dict):
            errors.append("capabilities is not an object")
        details = {
            "serverUrl": session.url,
            "connected": True,
            "protocolVersion": session.protocol_version,
            "serverInfo": session.server_info,
        }
        return errors, details
