"""Mock OAuth 2.1 authorization server.

The endpoint plumbing (metadata, authorize, token, register) is shared by
every auth scenario; scenario-specific validation is injected as hooks.
"""

import base64
import hashlib
import inspect
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .. import spec_references as refs
from ..ledger import CheckLedger
from ..models import CheckStatus, utc_timestamp
from .request_logger import CheckRecordingMiddleware, request_target
from .token_verifier import MockTokenVerifier

logger = logging.getLogger(__name__)

AUTHORIZATION_CODE = "test-auth-code"

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_CLIENT_CREDENTIALS = "client_credentials"
GRANT_REFRESH_TOKEN = "refresh_token"
GRANT_JWT_BEARER = "urn:ietf:params:oauth:grant-type:jwt-bearer"
GRANT_TOKEN_EXCHANGE = "urn:ietf:params:oauth:grant-type:token-exchange"

ACCEPTED_GRANT_TYPES = (
    GRANT_AUTHORIZATION_CODE,
    GRANT_CLIENT_CREDENTIALS,
    GRANT_JWT_BEARER,
    GRANT_TOKEN_EXCHANGE,
    GRANT_REFRESH_TOKEN,
)


@dataclass
class AuthorizationRequest:
    """What the authorization hook sees."""
    client_id: Optional[str]
    scope: Optional[str]
    resource: Optional[str]
    timestamp: str
    query: Dict[str, str] = field(default_factory=dict)


@dataclass
class TokenRequest:
    """What the token hook sees."""
    grant_type: Optional[str]
    scope: Optional[str]
    body: Dict[str, str]
    timestamp: str
    auth_base_url: str
    token_endpoint: str
    authorization_header: Optional[str] = None


@dataclass
class TokenGrant:
    token: str
    scopes: List[str] = field(default_factory=list)


@dataclass
class TokenError:
    error: str
    error_description: Optional[str] = None
    status_code: int = 400


@dataclass
class RegistrationResult:
    client_id: str
    client_secret: Optional[str] = None
    token_endpoint_auth_method: Optional[str] = None


MaybeAwaitable = Union[Any, Awaitable[Any]]
AuthorizationHook = Callable[[AuthorizationRequest], MaybeAwaitable]
TokenHook = Callable[[TokenRequest], MaybeAwaitable]
RegistrationHook = Callable[[Dict[str, Any]], MaybeAwaitable]


@dataclass
class AuthServerOptions:
    """Knobs for one mock authorization server instance."""
    metadata_path: str = "/.well-known/oauth-authorization-server"
    is_openid_configuration: bool = False
    logging_enabled: bool = True
    route_prefix: str = ""
    scopes_supported: Optional[List[str]] = None
    grant_types_supported: List[str] = field(default_factory=lambda: [GRANT_AUTHORIZATION_CODE, GRANT_REFRESH_TOKEN])
    token_endpoint_auth_methods_supported: List[str] = field(default_factory=lambda: ["none"])
    token_endpoint_auth_signing_alg_values_supported: Optional[List[str]] = None
    client_id_metadata_document_supported: Optional[bool] = None
    disable_dynamic_registration: bool = False
    # None omits the field from metadata
    code_challenge_methods_supported: Optional[List[str]] = field(default_factory=lambda: ["S256"])
    token_verifier: Optional[MockTokenVerifier] = None
    on_authorization_request: Optional[AuthorizationHook] = None
    on_token_request: Optional[TokenHook] = None
    on_registration_request: Optional[RegistrationHook] = None


async def maybe_await(value):
    """Resolve a hook result that may or may not be awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def compute_s256_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii", errors="replace")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def oauth_error(error: str, description: Optional[str] = None, status_code: int = 400) -> JSONResponse:
    content = {"error": error}
    if description:
        content["error_description"] = description
    return JSONResponse(status_code=status_code, content=content, headers={"Cache-Control": "no-store"})


async def read_params(request: Request) -> Dict[str, str]:
    """Parse a form or JSON request body, keeping the first value per key."""
    raw = await request.body()
    if not raw:
        return {}
    content_type = request.headers.get("content-type", "").lower()
    text = raw.decode("utf-8", errors="replace")
    if "application/json" in content_type:
        try:
            data = json.loads(text)
        except ValueError:
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}
    params: Dict[str, str] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        params.setdefault(key, value)
    return params


def add_query(url: str, **params: Optional[str]) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((k, v) for k, v in params.items() if v)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class _FlowState:
    """Values carried from the authorization step to the token step."""

    def __init__(self):
        self._lock = threading.Lock()
        self.last_authorization_scopes: List[str] = []
        self.code_challenge: Optional[str] = None

    def remember_authorization(self, scopes: List[str], code_challenge: Optional[str]) -> None:
        with self._lock:
            self.last_authorization_scopes = scopes
            self.code_challenge = code_challenge

    def read(self):
        with self._lock:
            return list(self.last_authorization_scopes), self.code_challenge


def _record_pkce_verifier(ledger: CheckLedger, code_verifier: Optional[str], stored_challenge: Optional[str], timestamp: str) -> None:
    ledger.record(
        id="pkce-code-verifier-sent",
        name="PKCE Code Verifier",
        description=(
            "Client sent code_verifier in token request"
            if code_verifier
            else "Client MUST send code_verifier in token request"
        ),
        status=CheckStatus.SUCCESS if code_verifier else CheckStatus.FAILURE,
        spec_references=[refs.MCP_PKCE],
        timestamp=timestamp,
    )

    computed = compute_s256_challenge(code_verifier) if code_verifier and stored_challenge else None
    matches = computed is not None and computed == stored_challenge

    if not stored_challenge and not code_verifier:
        description = "Neither code_challenge nor code_verifier were sent - PKCE is required"
    elif not stored_challenge:
        description = "code_challenge was not sent in authorization request - PKCE is required"
    elif not code_verifier:
        description = "code_verifier was not sent in token request - PKCE is required"
    elif matches:
        description = "code_verifier correctly matches code_challenge (S256)"
    else:
        description = "code_verifier does not match code_challenge"

    ledger.record(
        id="pkce-verifier-matches-challenge",
        name="PKCE Verifier Validation",
        description=description,
        status=CheckStatus.SUCCESS if matches else CheckStatus.FAILURE,
        spec_references=[refs.MCP_PKCE],
        details={
            "matches": matches,
            "storedChallenge": stored_challenge or "not sent",
            "computedChallenge": computed or "not computed",
        },
        timestamp=timestamp,
    )


def create_auth_router(
    ledger: CheckLedger,
    get_auth_base_url: Callable[[], str],
    options: Optional[AuthServerOptions] = None,
) -> APIRouter:
    """Create the authorization server routes.

    Args:
        ledger: Ledger the endpoints record into
        get_auth_base_url: Deferred accessor for the server's own base URL
        options: Metadata and hook configuration

    Returns:
        Router that can be mounted on a dedicated app or on a resource server
    """
    options = options or AuthServerOptions()
    router = APIRouter()
    flow = _FlowState()

    prefix = options.route_prefix
    authorization_path = f"{prefix}/authorize"
    token_path = f"{prefix}/token"
    registration_path = f"{prefix}/register"

    @router.get(options.metadata_path)
    async def authorization_server_metadata(request: Request):
        ledger.record(
            id="authorization-server-metadata",
            name="AuthorizationServerMetadata",
            description="Client requested authorization server metadata",
            status=CheckStatus.SUCCESS,
            spec_references=[refs.RFC_AUTH_SERVER_METADATA_REQUEST, refs.MCP_AUTH_DISCOVERY],
            details={"url": request_target(request), "path": request.url.path},
        )

        base = get_auth_base_url()
        metadata: Dict[str, Any] = {
            "issuer": base,
            "authorization_endpoint": f"{base}{authorization_path}",
            "token_endpoint": f"{base}{token_path}",
        }
        if not options.disable_dynamic_registration:
            metadata["registration_endpoint"] = f"{base}{registration_path}"
        metadata["response_types_supported"] = ["code"]
        metadata["grant_types_supported"] = options.grant_types_supported
        if options.code_challenge_methods_supported is not None:
            metadata["code_challenge_methods_supported"] = options.code_challenge_methods_supported
        metadata["token_endpoint_auth_methods_supported"] = options.token_endpoint_auth_methods_supported
        if options.token_endpoint_auth_signing_alg_values_supported:
            metadata["token_endpoint_auth_signing_alg_values_supported"] = (
                options.token_endpoint_auth_signing_alg_values_supported
            )
        if options.scopes_supported is not None:
            metadata["scopes_supported"] = options.scopes_supported
        if options.client_id_metadata_document_supported is not None:
            metadata["client_id_metadata_document_supported"] = options.client_id_metadata_document_supported
        if options.is_openid_configuration:
            metadata["jwks_uri"] = f"{base}/.well-known/jwks.json"
            metadata["subject_types_supported"] = ["public"]
            metadata["id_token_signing_alg_values_supported"] = ["RS256"]

        return JSONResponse(content=metadata)

    @router.get(authorization_path)
    async def authorize(request: Request):
        timestamp = utc_timestamp()
        query = dict(request.query_params)

        ledger.record(
            id="authorization-request",
            name="AuthorizationRequest",
            description="Client made authorization request",
            status=CheckStatus.SUCCESS,
            spec_references=[refs.OAUTH_2_1_AUTHORIZATION_ENDPOINT],
            details={"query": query},
            timestamp=timestamp,
        )

        code_challenge = query.get("code_challenge")
        code_challenge_method = query.get("code_challenge_method")
        ledger.record(
            id="pkce-code-challenge-sent",
            name="PKCE Code Challenge",
            description=(
                "Client sent code_challenge in authorization request"
                if code_challenge
                else "Client MUST send code_challenge in authorization request"
            ),
            status=CheckStatus.SUCCESS if code_challenge else CheckStatus.FAILURE,
            spec_references=[refs.MCP_PKCE],
            timestamp=timestamp,
        )
        uses_s256 = code_challenge_method == "S256"
        ledger.record(
            id="pkce-s256-method-used",
            name="PKCE S256 Method",
            description=(
                "Client used S256 code challenge method"
                if uses_s256
                else "Client MUST use S256 code challenge method when technically capable"
            ),
            status=CheckStatus.SUCCESS if uses_s256 else CheckStatus.FAILURE,
            spec_references=[refs.MCP_PKCE],
            details={"method": code_challenge_method or "not specified"},
            timestamp=timestamp,
        )

        scope = query.get("scope")
        flow.remember_authorization(scope.split() if scope else [], code_challenge)

        if options.on_authorization_request:
            await maybe_await(
                options.on_authorization_request(
                    AuthorizationRequest(
                        client_id=query.get("client_id"),
                        scope=scope,
                        resource=query.get("resource"),
                        timestamp=timestamp,
                        query=query,
                    )
                )
            )

        redirect_uri = query.get("redirect_uri")
        parts = urlsplit(redirect_uri) if redirect_uri else None
        if not parts or not parts.scheme or not parts.netloc:
            ledger.record(
                id="authorization-request-redirect-uri",
                name="AuthorizationRequestRedirectUri",
                description=(
                    "Authorization request MUST carry an absolute redirect_uri, "
                    f"got {redirect_uri!r}"
                ),
                status=CheckStatus.FAILURE,
                spec_references=[refs.OAUTH_2_1_AUTHORIZATION_ENDPOINT],
                details={"expected": "absolute URI", "actual": redirect_uri},
                timestamp=timestamp,
            )
            return oauth_error("invalid_request", "Missing or invalid redirect_uri")

        location = add_query(redirect_uri, code=AUTHORIZATION_CODE, state=query.get("state"))
        return RedirectResponse(url=location, status_code=302)

    @router.post(token_path)
    async def token(request: Request):
        timestamp = utc_timestamp()
        body = await read_params(request)
        grant_type = body.get("grant_type")

        ledger.record(
            id="token-request",
            name="TokenRequest",
            description="Client requested access token",
            status=CheckStatus.SUCCESS,
            spec_references=[refs.OAUTH_2_1_TOKEN],
            details={"endpoint": "/token", "grantType": grant_type},
            timestamp=timestamp,
        )

        if grant_type not in ACCEPTED_GRANT_TYPES:
            ledger.record(
                id="token-request-grant-type",
                name="TokenRequestGrantType",
                description=f"Token request grant_type must be one of {', '.join(ACCEPTED_GRANT_TYPES)}, got {grant_type!r}",
                status=CheckStatus.FAILURE,
                spec_references=[refs.OAUTH_2_1_TOKEN],
                details={"expected": list(ACCEPTED_GRANT_TYPES), "actual": grant_type},
                timestamp=timestamp,
            )
            if not grant_type:
                return oauth_error("invalid_request", "Missing grant_type")
            return oauth_error("unsupported_grant_type", f"Unsupported grant_type: {grant_type}")

        scopes, stored_challenge = flow.read()
        if grant_type == GRANT_AUTHORIZATION_CODE:
            _record_pkce_verifier(ledger, body.get("code_verifier"), stored_challenge, timestamp)

        token_value = f"test-token-{int(time.time() * 1000)}"
        if options.on_token_request:
            base = get_auth_base_url()
            result = await maybe_await(
                options.on_token_request(
                    TokenRequest(
                        grant_type=grant_type,
                        scope=body.get("scope"),
                        body=body,
                        timestamp=timestamp,
                        auth_base_url=base,
                        token_endpoint=f"{base}{token_path}",
                        authorization_header=request.headers.get("authorization"),
                    )
                )
            )
            if isinstance(result, TokenError):
                return oauth_error(result.error, result.error_description, result.status_code)
            token_value = result.token
            scopes = list(result.scopes)

        if options.token_verifier is not None:
            options.token_verifier.register_token(token_value, scopes)

        content: Dict[str, Any] = {
            "access_token": token_value,
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        if scopes:
            content["scope"] = " ".join(scopes)
        return JSONResponse(content=content, headers={"Cache-Control": "no-store"})

    @router.post(registration_path)
    async def register(request: Request):
        timestamp = utc_timestamp()
        raw = await request.body()
        try:
            metadata = json.loads(raw or b"{}")
        except ValueError as e:
            metadata = None
            parse_error = str(e)
        else:
            parse_error = None if isinstance(metadata, dict) else "body is not a JSON object"

        if parse_error:
            ledger.record(
                id="client-registration",
                name="ClientRegistration",
                description=f"Registration request MUST be a JSON object: {parse_error}",
                status=CheckStatus.FAILURE,
                spec_references=[refs.MCP_DCR],
                details={"expected": "JSON object", "actual": raw.decode("utf-8", errors="replace")[:200]},
                timestamp=timestamp,
            )
            return oauth_error("invalid_client_metadata", "Registration body must be a JSON object")

        registration = RegistrationResult(client_id="test-client-id", client_secret="test-client-secret")
        if options.on_registration_request:
            registration = await maybe_await(options.on_registration_request(metadata))

        details: Dict[str, Any] = {"endpoint": "/register", "clientName": metadata.get("client_name")}
        if registration.token_endpoint_auth_method:
            details["tokenEndpointAuthMethod"] = registration.token_endpoint_auth_method
        ledger.record(
            id="client-registration",
            name="ClientRegistration",
            description="Client registered with authorization server",
            status=CheckStatus.SUCCESS,
            spec_references=[refs.MCP_DCR],
            details=details,
            timestamp=timestamp,
        )

        content: Dict[str, Any] = {"client_id": registration.client_id}
        if registration.client_secret:
            content["client_secret"] = registration.client_secret
        content["client_name"] = metadata.get("client_name") or "test-client"
        content["redirect_uris"] = metadata.get("redirect_uris") or []
        if registration.token_endpoint_auth_method:
            content["token_endpoint_auth_method"] = registration.token_endpoint_auth_method
        return JSONResponse(status_code=201, content=content)

    return router


def create_auth_server(
    ledger: CheckLedger,
    get_auth_base_url: Callable[[], str],
    options: Optional[AuthServerOptions] = None,
) -> FastAPI:
    """Create a standalone mock authorization server app."""
    options = options or AuthServerOptions()
    app = FastAPI(title="Mock Authorization Server", docs_url=None, redoc_url=None, openapi_url=None)
    if options.logging_enabled:
        app.add_middleware(
            CheckRecordingMiddleware,
            ledger=ledger,
            incoming_id="incoming-auth-request",
            outgoing_id="outgoing-auth-response",
        )
    app.include_router(create_auth_router(ledger, get_auth_base_url, options))
    return app
