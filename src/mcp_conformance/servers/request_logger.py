"""Middleware that mirrors every HTTP exchange into the check ledger as INFO."""

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..ledger import CheckLedger
from ..models import CheckStatus
from ..shared.log_levels import TRACE

logger = logging.getLogger(__name__)


def check_name(check_id: str) -> str:
    """Display name for a logging check id (``incoming-request`` -> ``Incoming-request``)."""
    return check_id[:1].upper() + check_id[1:]


def decode_body(raw: bytes, content_type: Optional[str]) -> Any:
    """Best-effort decode of a request or response body for the ledger."""
    if not raw:
        return None
    content_type = (content_type or "").lower()
    text = raw.decode("utf-8", errors="replace")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(text, keep_blank_values=True))
    try:
        return json.loads(text)
    except ValueError:
        return text


class CheckRecordingMiddleware(BaseHTTPMiddleware):
    """Append an incoming and an outgoing INFO check for every request.

    On the MCP route the JSON-RPC method name is pulled out of the body so the
    transcript shows which protocol step each exchange belonged to.
    """

    def __init__(
        self,
        app,
        ledger: CheckLedger,
        incoming_id: str = "incoming-request",
        outgoing_id: str = "outgoing-response",
        mcp_route: Optional[str] = None,
    ):
        super().__init__(app)
        self.ledger = ledger
        self.incoming_id = incoming_id
        self.outgoing_id = outgoing_id
        self.mcp_route = mcp_route

    async def dispatch(self, request: Request, call_next):
        raw_body = await request.body()
        body = decode_body(raw_body, request.headers.get("content-type"))

        description = f"Received {request.method} request for {request.url.path}"
        details: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "body": body,
        }
        if request.query_params:
            details["query"] = dict(request.query_params)

        mcp_method = None
        if self.mcp_route and request.url.path == self.mcp_route and isinstance(body, dict):
            mcp_method = body.get("method")
        if mcp_method:
            description += f" (method: {mcp_method})"
            details["mcpMethod"] = mcp_method

        self.ledger.record(
            id=self.incoming_id,
            name=check_name(self.incoming_id),
            description=description,
            status=CheckStatus.INFO,
            details=details,
        )
        logger.log(TRACE, description)

        response = await call_next(request)

        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
        response_body = b"".join(chunks)

        description = f"Sent {response.status_code} response for {request.method} {request.url.path}"
        response_details: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "statusCode": response.status_code,
        }
        if mcp_method:
            description += f" (method: {mcp_method})"
            response_details["mcpMethod"] = mcp_method
        headers = dict(response.headers)
        if headers:
            response_details["headers"] = headers
        decoded = decode_body(response_body, response.headers.get("content-type"))
        if decoded is not None:
            response_details["body"] = decoded

        self.ledger.record(
            id=self.outgoing_id,
            name=check_name(self.outgoing_id),
            description=description,
            status=CheckStatus.INFO,
            details=response_details,
        )
        logger.log(TRACE, description)

        return Response(
            content=response_body,
            status_code=response.status_code,
            headers=headers,
            media_type=response.media_type,
        )


def request_target(request: Request) -> str:
    """Path plus query string, as sent on the request line."""
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path
