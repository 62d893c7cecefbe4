"""Mock MCP protected resource server.

Serves Protected Resource Metadata at a configurable location and guards
``POST /mcp`` with an auth policy that is evaluated per request, so the
challenge can cite the server's own base URL, which is only known once the
listener is bound.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .. import spec_references as refs
from ..ledger import CheckLedger
from ..models import CheckStatus, SpecReference
from .auth_policies import AuthPolicy, BearerAuthPolicy, MethodScopePolicy
from .mcp_endpoint import INVALID_REQUEST, PARSE_ERROR, JsonRpcError, McpEndpoint, ToolSpec, jsonrpc_error_response
from .request_logger import CheckRecordingMiddleware, request_target
from .token_verifier import MockTokenVerifier

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
ROOT_PRM_PATH = "/.well-known/oauth-protected-resource"
PATH_BASED_PRM_PATH = "/.well-known/oauth-protected-resource/mcp"
ROOT_AS_METADATA_PATH = "/.well-known/oauth-authorization-server"


@dataclass
class ResourceServerOptions:
    """Knobs for one mock resource server instance."""
    # None serves no PRM at all
    prm_path: Optional[str] = PATH_BASED_PRM_PATH
    prm_resource_override: Optional[str] = None
    required_scopes: List[str] = field(default_factory=list)
    scopes_supported: Optional[List[str]] = None
    include_scope_in_www_auth: bool = False
    include_prm_in_www_auth: bool = True
    # When set, enforcement depends on the JSON-RPC method and required_scopes is the default
    scopes_by_method: Optional[Dict[str, List[str]]] = None
    auth_policy: Optional[AuthPolicy] = None
    token_verifier: Optional[MockTokenVerifier] = None
    tools: List[ToolSpec] = field(default_factory=list)
    mcp_endpoint: Optional[McpEndpoint] = None
    server_name: str = "auth-prm-pathbased-server"
    logging_enabled: bool = True


def prm_resource(base_url: str, prm_path: Optional[str]) -> str:
    """Resource identifier advertised in PRM.

    The resource is the MCP endpoint, except when PRM sits at the root
    well-known path, in which case it is the origin.
    """
    if prm_path == ROOT_PRM_PATH:
        return base_url
    return f"{base_url}{MCP_PATH}"


def add_trap(
    app: FastAPI,
    path: str,
    ledger: CheckLedger,
    check_id: str,
    name: str,
    description: str,
    spec_references: Sequence[SpecReference] = (),
    error_description: Optional[str] = None,
) -> None:
    """Record a FAILURE whenever a client probes ``path``, then answer 404.

    Args:
        app: App to register the trap on
        path: Conventional-but-wrong location
        ledger: Ledger receiving the failure
        check_id: Id of the recorded check
        name: Check name
        description: Check description
        spec_references: Clauses the probe violates
        error_description: If set, answer with an OAuth-style error body; otherwise plain text
    """

    async def trap(request: Request):
        ledger.record(
            id=check_id,
            name=name,
            description=description,
            status=CheckStatus.FAILURE,
            spec_references=spec_references,
            details={"url": request_target(request), "path": request.url.path},
        )
        if error_description:
            return JSONResponse(
                status_code=404,
                content={"error": "not_found", "error_description": error_description},
            )
        return PlainTextResponse("Not Found", status_code=404)

    app.add_api_route(path, trap, methods=["GET"], name=f"trap:{check_id}")


def create_resource_server(
    ledger: CheckLedger,
    get_base_url: Callable[[], str],
    get_auth_server_url: Callable[[], str],
    options: Optional[ResourceServerOptions] = None,
) -> FastAPI:
    """Create a mock MCP resource server app.

    Args:
        ledger: Ledger the endpoints record into
        get_base_url: Deferred accessor for this server's base URL
        get_auth_server_url: Deferred accessor for the authorization server URL
        options: PRM and enforcement configuration

    Returns:
        FastAPI application
    """
    options = options or ResourceServerOptions()
    verifier = options.token_verifier or MockTokenVerifier(ledger)

    def resource_metadata_url() -> Optional[str]:
        if options.prm_path is None or not options.include_prm_in_www_auth:
            return None
        return f"{get_base_url()}{options.prm_path}"

    policy = options.auth_policy
    if policy is None and options.scopes_by_method is not None:
        policy = MethodScopePolicy(
            verifier,
            default_scopes=options.required_scopes,
            scopes_by_method=options.scopes_by_method,
            get_resource_metadata_url=resource_metadata_url,
        )
    elif policy is None:
        policy = BearerAuthPolicy(
            verifier,
            required_scopes=options.required_scopes,
            get_resource_metadata_url=resource_metadata_url,
            include_scope_in_www_auth=options.include_scope_in_www_auth,
        )
    endpoint = options.mcp_endpoint or McpEndpoint(server_name=options.server_name, tools=options.tools)

    app = FastAPI(title="Mock MCP Resource Server", docs_url=None, redoc_url=None, openapi_url=None)
    if options.logging_enabled:
        app.add_middleware(
            CheckRecordingMiddleware,
            ledger=ledger,
            incoming_id="incoming-request",
            outgoing_id="outgoing-response",
            mcp_route=MCP_PATH,
        )

    if options.prm_path is not None:

        @app.get(options.prm_path)
        async def protected_resource_metadata(request: Request):
            ledger.record(
                id="prm-pathbased-requested",
                name="PRMPathBasedRequested",
                description="Client requested PRM metadata at path-based location",
                status=CheckStatus.SUCCESS,
                spec_references=[refs.RFC_PRM_DISCOVERY, refs.MCP_PRM_DISCOVERY],
                details={"url": request_target(request), "path": request.url.path},
            )
            metadata: Dict[str, Any] = {
                "resource": options.prm_resource_override or prm_resource(get_base_url(), options.prm_path),
                "authorization_servers": [get_auth_server_url()],
            }
            if options.scopes_supported is not None:
                metadata["scopes_supported"] = options.scopes_supported
            return JSONResponse(content=metadata)

    @app.post(MCP_PATH)
    async def mcp(request: Request):
        raw = await request.body()
        try:
            message = json.loads(raw)
        except ValueError as e:
            return jsonrpc_error_response(None, JsonRpcError(PARSE_ERROR, f"Parse error: {e}"), 400)
        if isinstance(message, list):
            return jsonrpc_error_response(None, JsonRpcError(INVALID_REQUEST, "Batch requests are not supported"), 400)

        rpc_method = message.get("method") if isinstance(message, dict) else None
        rejection = await policy.authorize(request, rpc_method)
        if rejection is not None:
            return rejection
        return await endpoint.handle(message)

    @app.get(MCP_PATH)
    async def mcp_stream():
        return Response(status_code=405, headers={"Allow": "POST"})

    return app
