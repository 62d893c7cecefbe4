"""A minimal Streamable HTTP MCP client for exercising servers under test.

Requests are POSTed as JSON-RPC; the server may answer with a plain JSON
body or with an SSE stream carrying the response as a ``message`` event.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ...errors import McpSessionError

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-06-18"
CLIENT_INFO = {"name": "mcp-conformance", "version": "0.1.0"}
SESSION_HEADER = "mcp-session-id"


@dataclass
class SSEMessage:
    event: Optional[str] = None
    data: Optional[str] = None
    id: Optional[str] = None


def parse_sse(text: str) -> List[SSEMessage]:
    """Split an SSE body into messages."""
    messages: List[SSEMessage] = []
    message = SSEMessage()
    for line in text.splitlines():
        if not line:
            if message.event or message.data:
                messages.append(message)
            message = SSEMessage()
            continue
        if line.startswith("event:"):
            message.event = line[6:].strip()
        elif line.startswith("data:"):
            data = line[5:].strip()
            message.data = f"{message.data}\n{data}" if message.data else data
        elif line.startswith("id:"):
            message.id = line[3:].strip()
    if message.event or message.data:
        messages.append(message)
    return messages


class McpHttpSession:
    """JSON-RPC over HTTP with session id tracking.

    Use as an async context manager; ``initialize()`` performs the
    two-phase handshake and ``request()`` returns the ``result`` member.
    """

    def __init__(self, url: str, timeout: float = 30.0, headers: Optional[Dict[str, str]] = None):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self.session_id: Optional[str] = None
        self.protocol_version: Optional[str] = None
        self.server_info: Dict[str, Any] = {}
        self.capabilities: Dict[str, Any] = {}
        self._next_id = 1
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "McpHttpSession":
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        if self._client is None:
            return
        if self.session_id:
            try:
                await self._client.delete(self.url, headers=self._headers())
            except httpx.HTTPError as e:
                logger.debug(f"Session termination failed: {e}")
        await self._client.aclose()
        self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **self.headers,
        }
        if self.session_id:
            headers["Mcp-Session-Id"] = self.session_id
        if self.protocol_version:
            headers["MCP-Protocol-Version"] = self.protocol_version
        return headers

    async def _post(self, message: Dict[str, Any]) -> httpx.Response:
        if self._client is None:
            raise McpSessionError("Session is not open")
        logger.debug(f"-> {message.get('method')} {self.url}")
        response = await self._client.post(self.url, json=message, headers=self._headers())
        if SESSION_HEADER in response.headers:
            self.session_id = response.headers[SESSION_HEADER]
        return response

    @staticmethod
    def _extract_response(response: httpx.Response, request_id: int) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            for message in parse_sse(response.text):
                if not message.data:
                    continue
                try:
                    payload = json.loads(message.data)
                except ValueError:
                    continue
                if isinstance(payload, dict) and payload.get("id") == request_id:
                    return payload
            raise McpSessionError(f"No response with id {request_id} in event stream", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise McpSessionError(
                f"HTTP {response.status_code}: response is not JSON ({e})", status_code=response.status_code
            ) from e
        if not isinstance(payload, dict):
            raise McpSessionError("Response is not a JSON-RPC object", status_code=response.status_code)
        return payload

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a request and return its result.

        Raises:
            McpSessionError: On a transport error, a JSON-RPC error or a malformed reply
        """
        request_id = self._next_id
        self._next_id += 1
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        try:
            response = await self._post(message)
        except httpx.HTTPError as e:
            raise McpSessionError(f"{method} request failed: {e}") from e

        if response.status_code >= 400 and "json" not in response.headers.get("content-type", ""):
            raise McpSessionError(f"HTTP {response.status_code} for {method}", status_code=response.status_code)

        payload = self._extract_response(response, request_id)
        if "error" in payload:
            error = payload["error"] or {}
            raise McpSessionError(
                f"{method} failed: {error.get('message', 'unknown error')}",
                code=error.get("code"),
                status_code=response.status_code,
            )
        if "result" not in payload:
            raise McpSessionError(f"{method} response has neither result nor error", status_code=response.status_code)
        return payload["result"]

    async def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        try:
            response = await self._post(message)
        except httpx.HTTPError as e:
            raise McpSessionError(f"{method} notification failed: {e}") from e
        if response.status_code >= 400:
            raise McpSessionError(f"HTTP {response.status_code} for {method}", status_code=response.status_code)

    async def initialize(self) -> Dict[str, Any]:
        """Run the initialize request and the initialized notification."""
        result = await self.request(
            "initialize",
            {"protocolVersion": PROTOCOL_VERSION, "capabilities": {}, "clientInfo": CLIENT_INFO},
        )
        for field_name in ("protocolVersion", "serverInfo", "capabilities"):
            if field_name not in result:
                raise McpSessionError(f"initialize result missing {field_name}")
        self.protocol_version = result["protocolVersion"]
        self.server_info = result["serverInfo"]
        self.capabilities = result["capabilities"]
        await self.notify("notifications/initialized")
        return result


async def connect(url: str, timeout: float = 30.0) -> McpHttpSession:
    """Open a session and complete the handshake."""
    session = McpHttpSession(url, timeout)
    await session.__aenter__()
    try:
        await session.initialize()
    except BaseException:
        await session.close()
        raise
    return session
