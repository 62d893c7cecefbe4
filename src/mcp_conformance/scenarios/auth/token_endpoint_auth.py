"""Token endpoint client authentication and RFC 8707 resource indicators.

The authorization server advertises exactly one
``token_endpoint_auth_methods_supported`` value; the client must use it.
The same flow also checks that the ``resource`` parameter is sent to both
endpoints, is a canonical URI, and does not change between them.
"""

import base64
import binascii
import threading
import time
from typing import List, Optional
from urllib.parse import urlsplit

from ... import spec_references as refs
from ...models import CheckStatus, ConformanceCheck, ScenarioUrls
from ...servers.auth_server import (
    AuthorizationRequest,
    AuthServerOptions,
    RegistrationResult,
    TokenGrant,
    TokenRequest,
)
from ..base import ExpectedCheck
from .flow import AuthScenario

CLIENT_SECRET_BASIC = "client_secret_basic"
CLIENT_SECRET_POST = "client_secret_post"
PUBLIC_CLIENT = "none"

AUTH_METHOD_NAMES = {
    CLIENT_SECRET_BASIC: "HTTP Basic authentication (client_secret_basic)",
    CLIENT_SECRET_POST: "client_secret_post",
    PUBLIC_CLIENT: "no authentication (public client)",
}

SCENARIO_SUFFIXES = {
    CLIENT_SECRET_BASIC: "basic",
    CLIENT_SECRET_POST: "post",
    PUBLIC_CLIENT: "none",
}

RESOURCE_REFS = [refs.RFC_8707_RESOURCE_INDICATORS, refs.MCP_RESOURCE_PARAMETER]


def detect_auth_method(authorization_header: Optional[str], body_client_secret: Optional[str]) -> str:
    if authorization_header and authorization_header.startswith("Basic "):
        return CLIENT_SECRET_BASIC
    if body_client_secret:
        return CLIENT_SECRET_POST
    return PUBLIC_CLIENT


def basic_auth_format_error(authorization_header: str) -> Optional[str]:
    """Describe what is wrong with a Basic header, or None if it decodes to ``id:secret``."""
    encoded = authorization_header[len("Basic "):].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return "base64 decoding failed"
    if ":" not in decoded:
        return "missing colon separator"
    return None


def canonical_uri_error(uri: str) -> Optional[str]:
    parts = urlsplit(uri)
    if not parts.scheme or not parts.netloc:
        return "invalid URI format"
    if parts.fragment or uri.endswith("#"):
        return "contains fragment (not allowed per RFC 8707)"
    return None


class TokenEndpointAuthScenario(AuthScenario):
    """Authorization-code flow against a server supporting a single auth method."""

    def __init__(self, auth_method: str, settings=None):
        self.auth_method = auth_method
        self.name = f"auth/token-endpoint-auth-{SCENARIO_SUFFIXES[auth_method]}"
        self.description = (
            f"Tests that client uses {AUTH_METHOD_NAMES[auth_method]} when server only supports {auth_method}"
        )
        self.expected_checks = [
            ExpectedCheck(
                "token-endpoint-auth-method",
                name="Token endpoint authentication method",
                description="Client did not make a token request",
                spec_references=(refs.OAUTH_2_1_TOKEN,),
            )
        ]
        super().__init__(settings)
        self._lock = threading.Lock()
        self._authorization_resource: Optional[str] = None
        self._token_resource: Optional[str] = None

    def _record_auth_method(self, request: TokenRequest) -> None:
        header = request.authorization_header
        body_secret = request.body.get("client_secret")
        actual = detect_auth_method(header, body_secret)

        format_error = None
        if actual == CLIENT_SECRET_BASIC and header:
            format_error = basic_auth_format_error(header)

        correct = actual == self.auth_method and format_error is None
        if format_error:
            description = f"Client sent Basic auth header but {format_error}"
        elif correct:
            description = f"Client correctly used {AUTH_METHOD_NAMES[self.auth_method]} for token endpoint"
        else:
            description = f"Client used {actual} but server only supports {self.auth_method}"

        details = {
            "expectedAuthMethod": self.auth_method,
            "actualAuthMethod": actual,
            "hasAuthorizationHeader": bool(header),
            "hasBodyClientSecret": bool(body_secret),
        }
        if format_error:
            details["formatError"] = format_error

        self.ledger.record(
            id="token-endpoint-auth-method",
            name="Token endpoint authentication method",
            description=description,
            status=CheckStatus.SUCCESS if correct else CheckStatus.FAILURE,
            spec_references=[refs.OAUTH_2_1_TOKEN],
            details=details,
            timestamp=request.timestamp,
        )

    async def setup(self) -> ScenarioUrls:
        with self._lock:
            self._authorization_resource = None
            self._token_resource = None

        def on_authorization_request(request: AuthorizationRequest):
            with self._lock:
                self._authorization_resource = request.resource

        def on_token_request(request: TokenRequest):
            with self._lock:
                self._token_resource = request.body.get("resource")
            self._record_auth_method(request)
            return TokenGrant(token=f"test-token-{int(time.time() * 1000)}", scopes=[])

        def on_registration_request(metadata):
            stamp = int(time.time() * 1000)
            return RegistrationResult(
                client_id=f"test-client-{stamp}",
                client_secret=None if self.auth_method == PUBLIC_CLIENT else f"test-secret-{stamp}",
                token_endpoint_auth_method=self.auth_method,
            )

        get_auth_url = await self.serve_auth(
            AuthServerOptions(
                token_endpoint_auth_methods_supported=[self.auth_method],
                on_authorization_request=on_authorization_request,
                on_token_request=on_token_request,
                on_registration_request=on_registration_request,
            )
        )
        server = await self.serve_resource(get_auth_url)
        return self.mcp_urls(server)

    def post_hoc_checks(self, checks: List[ConformanceCheck]) -> List[ConformanceCheck]:
        with self._lock:
            authorization_resource = self._authorization_resource
            token_resource = self._token_resource

        seen = {check.id for check in checks}
        extra: List[ConformanceCheck] = []

        def add(check_id, name, ok, success, failure, details):
            if check_id in seen:
                return
            extra.append(
                ConformanceCheck(
                    id=check_id,
                    name=name,
                    description=success if ok else failure,
                    status=CheckStatus.SUCCESS if ok else CheckStatus.FAILURE,
                    spec_references=RESOURCE_REFS,
                    details=details,
                )
            )

        add(
            "resource-parameter-in-authorization",
            "Resource parameter in authorization request",
            bool(authorization_resource),
            "Client included resource parameter in authorization request",
            "Client MUST include resource parameter in authorization request per RFC 8707",
            {"expected": "resource parameter", "resource": authorization_resource or "not provided"},
        )
        add(
            "resource-parameter-in-token",
            "Resource parameter in token request",
            bool(token_resource),
            "Client included resource parameter in token request",
            "Client MUST include resource parameter in token request per RFC 8707",
            {"expected": "resource parameter", "resource": token_resource or "not provided"},
        )

        candidate = authorization_resource or token_resource
        if candidate:
            error = canonical_uri_error(candidate)
            details = {"resource": candidate}
            if error:
                details["error"] = error
            add(
                "resource-parameter-valid-uri",
                "Resource parameter is valid canonical URI",
                error is None,
                "Resource parameter is a valid canonical URI (has scheme, no fragment)",
                f"Resource parameter is invalid: {error}",
                details,
            )

        if authorization_resource and token_resource:
            add(
                "resource-parameter-consistency",
                "Resource parameter consistency",
                authorization_resource == token_resource,
                "Resource parameter is consistent between authorization and token requests",
                "Resource parameter MUST be consistent between authorization and token requests",
                {"authorizationResource": authorization_resource, "tokenResource": token_resource},
            )
        return extra

