"""Minimal JSON-RPC handler for the MCP endpoint of the mock servers.

Only the handful of methods a client touches during an auth flow are
implemented; everything else answers "method not found".
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from fastapi.responses import JSONResponse, Response

from .auth_server import maybe_await

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2025-06-18", "2025-11-25")
LATEST_PROTOCOL_VERSION = "2025-11-25"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JsonRpcError(Exception):
    """Error returned to the caller as a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


@dataclass
class ToolSpec:
    """A tool served by ``tools/list`` and dispatched by ``tools/call``.

    The handler receives the call arguments and returns a CallToolResult dict.
    """
    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    handler: Optional[Callable[[Dict[str, Any]], Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


def jsonrpc_error_response(request_id: Any, error: JsonRpcError, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"jsonrpc": "2.0", "id": request_id, "error": error.to_dict()},
    )


class McpEndpoint:
    """Stateless JSON-RPC dispatcher behind ``POST /mcp``."""

    def __init__(
        self,
        server_name: str = "mock-mcp-server",
        server_version: str = "1.0.0",
        tools: Optional[List[ToolSpec]] = None,
        on_initialize: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self.server_info = {"name": server_name, "version": server_version}
        self.tools = {tool.name: tool for tool in (tools or [])}
        self.on_initialize = on_initialize

    async def handle(self, message: Any) -> Response:
        """Answer one decoded JSON-RPC message."""
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0" or not isinstance(message.get("method"), str):
            request_id = message.get("id") if isinstance(message, dict) else None
            return jsonrpc_error_response(request_id, JsonRpcError(INVALID_REQUEST, "Invalid Request"), 400)

        method = message["method"]
        params = message.get("params") or {}

        if "id" not in message:
            logger.debug(f"Notification received: {method}")
            return Response(status_code=202)

        request_id = message["id"]
        try:
            result = await self.dispatch(method, params)
        except JsonRpcError as e:
            return jsonrpc_error_response(request_id, e)
        except Exception as e:
            logger.exception(f"Error handling {method}: {e}")
            return jsonrpc_error_response(request_id, JsonRpcError(INTERNAL_ERROR, "Internal server error"))

        return JSONResponse(content={"jsonrpc": "2.0", "id": request_id, "result": result})

    async def dispatch(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if method == "initialize":
            return await self._initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": [tool.to_dict() for tool in self.tools.values()]}
        if method == "tools/call":
            return await self._call_tool(params)
        raise JsonRpcError(METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.on_initialize:
            await maybe_await(self.on_initialize(params))

        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        capabilities: Dict[str, Any] = {}
        if self.tools:
            capabilities["tools"] = {}
        return {
            "protocolVersion": version,
            "serverInfo": self.server_info,
            "capabilities": capabilities,
        }

    async def _call_tool(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        tool = self.tools.get(name)
        if tool is None or tool.handler is None:
            raise JsonRpcError(INVALID_PARAMS, f"Unknown tool: {name}")
        arguments = params.get("arguments") or {}
        return await maybe_await(tool.handler(arguments))
