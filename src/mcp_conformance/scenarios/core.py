"""Non-auth client scenarios: initialization handshake and a simple tool call."""

from typing import Any, Dict, List

from .. import spec_references as refs
from ..models import CheckStatus, ScenarioUrls
from ..servers.auth_policies import NoAuthPolicy
from ..servers.mcp_endpoint import McpEndpoint, ToolSpec
from ..servers.resource_server import MCP_PATH, ResourceServerOptions, create_resource_server
from .base import ExpectedCheck, Scenario

# Versions a client may legitimately send in initialize
VALID_PROTOCOL_VERSIONS = ("2025-06-18", "2025-11-25")
EXPECTED_PROTOCOL_VERSION = "2025-11-25"

SERVER_INFO = {"name": "test-server", "version": "1.0.0"}


def client_initialization_errors(params: Dict[str, Any]) -> List[str]:
    errors = []
    version = params.get("protocolVersion")
    client_info = params.get("clientInfo") or {}
    if not version:
        errors.append("Protocol version not provided")
    if version not in VALID_PROTOCOL_VERSIONS:
        errors.append(f"Version mismatch: expected {EXPECTED_PROTOCOL_VERSION}, got {version}")
    if not client_info.get("name"):
        errors.append("Client name missing")
    if not client_info.get("version"):
        errors.append("Client version missing")
    return errors


class InitializeScenario(Scenario):
    name = "initialize"
    description = "Tests MCP client initialization handshake"
    expected_checks = [
        ExpectedCheck(
            "mcp-client-initialization",
            name="MCPClientInitialization",
            description="Client never sent an initialize request",
            spec_references=(refs.MCP_LIFECYCLE,),
        )
    ]

    async def setup(self) -> ScenarioUrls:
        server = self.new_server("mcp")

        def on_initialize(params: Dict[str, Any]) -> None:
            errors = client_initialization_errors(params)
            client_info = params.get("clientInfo") or {}
            self.ledger.record(
                id="mcp-client-initialization",
                name="MCPClientInitialization",
                description="Validates that MCP client properly initializes with server",
                status=CheckStatus.FAILURE if errors else CheckStatus.SUCCESS,
                spec_references=[refs.MCP_LIFECYCLE],
                details={
                    "protocolVersionSent": params.get("protocolVersion"),
                    "expectedSpecVersion": EXPECTED_PROTOCOL_VERSION,
                    "versionMatch": params.get("protocolVersion") in VALID_PROTOCOL_VERSIONS,
                    "clientName": client_info.get("name"),
                    "clientVersion": client_info.get("version"),
                },
                error_message="; ".join(errors) or None,
                logs=errors or None,
            )
            self.ledger.record(
                id="server-info",
                name="ServerInfo",
                description="Test server info returned to client",
                status=CheckStatus.INFO,
                spec_references=[refs.MCP_LIFECYCLE],
                details={"serverName": SERVER_INFO["name"], "serverVersion": SERVER_INFO["version"]},
            )

        endpoint = McpEndpoint(SERVER_INFO["name"], SERVER_INFO["version"], on_initialize=on_initialize)
        app = create_resource_server(
            self.ledger,
            server.get_url,
            server.get_url,
            ResourceServerOptions(prm_path=None, auth_policy=NoAuthPolicy(), mcp_endpoint=endpoint),
        )
        await server.start(app)
        return ScenarioUrls(server_url=f"{server.get_url()}{MCP_PATH}")


class ToolsCallScenario(Scenario):
    name = "tools_call"
    description = "Tests calling tools with various parameter types"
    expected_checks = [
        ExpectedCheck(
            "tool-add-numbers",
            name="ToolAddNumbers",
            description="Tool add_numbers was not called by client",
            spec_references=(refs.MCP_TOOLS,),
        )
    ]

    async def setup(self) -> ScenarioUrls:
        server = self.new_server("mcp")

        def add_numbers(arguments: Dict[str, Any]) -> Dict[str, Any]:
            a = arguments.get("a")
            b = arguments.get("b")
            numeric = all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (a, b))
            result = a + b if numeric else None
            self.ledger.record(
                id="tool-add-numbers",
                name="ToolAddNumbers",
                description=(
                    "Validates that the add_numbers tool works correctly"
                    if numeric
                    else f"add_numbers expects numeric a and b, got a={a!r}, b={b!r}"
                ),
                status=CheckStatus.SUCCESS if numeric else CheckStatus.FAILURE,
                spec_references=[refs.MCP_TOOLS],
                details={"a": a, "b": b, "result": result},
            )
            if not numeric:
                return {"content": [{"type": "text", "text": "Arguments a and b must be numbers"}], "isError": True}
            return {"content": [{"type": "text", "text": f"The sum of {a} and {b} is {result}"}]}

        tool = ToolSpec(
            name="add_numbers",
            description="Add two numbers together",
            input_schema={
                "type": "object",
                "properties": {
                    "a": {"type": "number", "description": "First number"},
                    "b": {"type": "number", "description": "Second number"},
                },
                "required": ["a", "b"],
            },
            handler=add_numbers,
        )
        endpoint = McpEndpoint("add-numbers-server", "1.0.0", tools=[tool])
        app = create_resource_server(
            self.ledger,
            server.get_url,
            server.get_url,
            ResourceServerOptions(prm_path=None, auth_policy=NoAuthPolicy(), mcp_endpoint=endpoint),
        )
        await server.start(app)
        return ScenarioUrls(server_url=f"{server.get_url()}{MCP_PATH}")
