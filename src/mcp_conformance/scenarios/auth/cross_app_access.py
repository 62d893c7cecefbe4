"""Enterprise-managed authorization (cross-app access).

Three servers take part: an identity provider that exchanges an ID token
for an identity assertion grant (ID-JAG) via RFC 8693 token exchange, an
authorization server that accepts that grant via the RFC 7523 jwt-bearer
grant, and the protected MCP server.
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Dict

import jwt
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ... import spec_references as refs
from ...models import CheckStatus, ScenarioUrls
from ...servers.auth_server import (
    GRANT_JWT_BEARER,
    GRANT_TOKEN_EXCHANGE,
    AuthServerOptions,
    TokenError,
    TokenGrant,
    TokenRequest,
    oauth_error,
    read_params,
)
from ..base import ExpectedCheck
from .flow import AuthScenario
from .signing import CLOCK_TOLERANCE_SECONDS, SigningKeyPair, issuer_audiences

CONFORMANCE_TEST_CLIENT_ID = "conformance-test-xaa-client"
IDP_CLIENT_ID = "conformance-test-idp-client"
DEMO_USER_ID = "demo-user@example.com"

ID_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:id_token"
ID_JAG_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:id-jag"
ID_JAG_JWT_TYPE = "oauth-id-jag+jwt"

CHECK_NAMES = {
    "complete-flow-token-exchange": "CompleteFlowTokenExchange",
    "complete-flow-jwt-bearer": "CompleteFlowJwtBearer",
}


def _expiry(seconds: int) -> datetime:
    return datetime.now(tz=timezone.utc) + timedelta(seconds=seconds)


class CrossAppAccessCompleteFlowScenario(AuthScenario):
    name = "auth/cross-app-access-complete-flow"
    description = (
        "Tests complete SEP-990 flow: token exchange + JWT bearer grant (Enterprise Managed OAuth)"
    )
    expected_checks = [
        ExpectedCheck(
            "complete-flow-token-exchange",
            name="CompleteFlowTokenExchange",
            description="Client did not perform token exchange",
            spec_references=(refs.RFC_8693_TOKEN_EXCHANGE, refs.SEP_990_ENTERPRISE_OAUTH),
        ),
        ExpectedCheck(
            "complete-flow-jwt-bearer",
            name="CompleteFlowJwtBearer",
            description="Client did not perform JWT bearer grant exchange",
            spec_references=(refs.RFC_7523_JWT_BEARER, refs.SEP_990_ENTERPRISE_OAUTH),
        ),
    ]

    def __init__(self, settings=None):
        super().__init__(settings)
        self._lock = threading.Lock()
        self._grant_keys: Dict[str, SigningKeyPair] = {}

    def _record(self, check_id: str, status: CheckStatus, description: str, references, timestamp=None, details=None):
        self.ledger.record(
            id=check_id,
            name=CHECK_NAMES[check_id],
            description=description,
            status=status,
            spec_references=references,
            details=details,
            timestamp=timestamp,
        )

    def _create_idp_app(self, idp_keys: SigningKeyPair, get_idp_url, get_auth_url) -> FastAPI:
        app = FastAPI(title="Mock Identity Provider", docs_url=None, redoc_url=None, openapi_url=None)

        @app.get("/.well-known/openid-configuration")
        async def idp_metadata():
            base = get_idp_url()
            return JSONResponse(
                content={
                    "issuer": base,
                    "authorization_endpoint": f"{base}/authorize",
                    "token_endpoint": f"{base}/token",
                    "jwks_uri": f"{base}/.well-known/jwks.json",
                    "grant_types_supported": [GRANT_TOKEN_EXCHANGE],
                }
            )

        @app.post("/token")
        async def idp_token(request: Request):
            body = await read_params(request)
            grant_type = body.get("grant_type")
            subject_token = body.get("subject_token")

            if grant_type != GRANT_TOKEN_EXCHANGE:
                self._record(
                    "complete-flow-token-exchange",
                    CheckStatus.FAILURE,
                    f"IdP expected token-exchange grant, got {grant_type}",
                    [refs.RFC_8693_TOKEN_EXCHANGE],
                    details={"expected": GRANT_TOKEN_EXCHANGE, "actual": grant_type},
                )
                return oauth_error("unsupported_grant_type", "IdP only supports token-exchange")

            if not subject_token or body.get("subject_token_type") != ID_TOKEN_TYPE:
                self._record(
                    "complete-flow-token-exchange",
                    CheckStatus.FAILURE,
                    "Invalid subject_token or subject_token_type",
                    [refs.RFC_8693_TOKEN_EXCHANGE],
                    details={"expected": ID_TOKEN_TYPE, "actual": body.get("subject_token_type")},
                )
                return oauth_error("invalid_request", "Invalid subject_token")

            try:
                claims = idp_keys.verify(subject_token, audience=[IDP_CLIENT_ID], issuer=get_idp_url())
            except jwt.PyJWTError as e:
                self._record(
                    "complete-flow-token-exchange",
                    CheckStatus.FAILURE,
                    f"Token exchange failed: {e}",
                    [refs.RFC_8693_TOKEN_EXCHANGE],
                    details={"error": str(e)},
                )
                return oauth_error("invalid_grant", "Invalid ID token")

            self._record(
                "complete-flow-token-exchange",
                CheckStatus.SUCCESS,
                "Successfully exchanged IDP ID token for ID-JAG at IdP",
                [refs.RFC_8693_TOKEN_EXCHANGE, refs.SEP_990_ENTERPRISE_OAUTH],
            )

            user_id = claims["sub"]
            grant_keys = SigningKeyPair.generate()
            with self._lock:
                self._grant_keys[user_id] = grant_keys
            id_jag = grant_keys.sign(
                {
                    "sub": user_id,
                    "grant_type": "id-jag",
                    "iss": get_idp_url(),
                    "aud": get_auth_url(),
                    "iat": datetime.now(tz=timezone.utc),
                    "exp": _expiry(300),
                },
                headers={"typ": ID_JAG_JWT_TYPE},
            )
            return JSONResponse(
                content={"access_token": id_jag, "issued_token_type": ID_JAG_TOKEN_TYPE, "token_type": "N_A"}
            )

        return app

    def _handle_jwt_bearer(self, request: TokenRequest):
        if request.grant_type != GRANT_JWT_BEARER:
            return TokenError(
                "unsupported_grant_type",
                f"Auth server only supports jwt-bearer grant, got {request.grant_type}",
            )

        assertion = request.body.get("assertion")
        if not assertion:
            self._record(
                "complete-flow-jwt-bearer",
                CheckStatus.FAILURE,
                "Missing assertion in JWT bearer grant",
                [refs.RFC_7523_JWT_BEARER],
                request.timestamp,
                details={"expected": "assertion parameter", "actual": "missing"},
            )
            return TokenError("invalid_request", "Missing assertion")

        try:
            subject = jwt.decode(assertion, options={"verify_signature": False}).get("sub")
            if not isinstance(subject, str):
                raise jwt.InvalidTokenError(f"Authorization grant sub must be a string, got {type(subject).__name__}")
            with self._lock:
                grant_keys = self._grant_keys.get(subject)
            if grant_keys is None:
                raise jwt.InvalidTokenError("Unknown authorization grant")
            grant_keys.verify(
                assertion,
                audience=issuer_audiences(request.auth_base_url),
                leeway=CLOCK_TOLERANCE_SECONDS,
            )
        except jwt.PyJWTError as e:
            self._record(
                "complete-flow-jwt-bearer",
                CheckStatus.FAILURE,
                f"JWT bearer grant failed: {e}",
                [refs.RFC_7523_JWT_BEARER],
                request.timestamp,
                details={"error": str(e)},
            )
            return TokenError("invalid_grant", "Invalid authorization grant")

        self._record(
            "complete-flow-jwt-bearer",
            CheckStatus.SUCCESS,
            "Successfully exchanged authorization grant for access token",
            [refs.RFC_7523_JWT_BEARER, refs.SEP_990_ENTERPRISE_OAUTH],
            request.timestamp,
        )
        return TokenGrant(token=f"test-token-{int(time.time() * 1000)}", scopes=(request.scope or "").split())

    async def setup(self) -> ScenarioUrls:
        with self._lock:
            self._grant_keys = {}
        idp_keys = SigningKeyPair.generate()

        get_auth_url = await self.serve_auth(
            AuthServerOptions(
                grant_types_supported=[GRANT_JWT_BEARER],
                token_endpoint_auth_methods_supported=["client_secret_basic", "private_key_jwt"],
                on_token_request=self._handle_jwt_bearer,
            )
        )

        idp = self.new_server("idp")
        await idp.start(self._create_idp_app(idp_keys, idp.get_url, get_auth_url))
        server = await self.serve_resource(get_auth_url)

        id_token = idp_keys.sign(
            {
                "sub": DEMO_USER_ID,
                "email": DEMO_USER_ID,
                "aud": IDP_CLIENT_ID,
                "iss": idp.get_url(),
                "iat": datetime.now(tz=timezone.utc),
                "exp": _expiry(3600),
            }
        )
        return self.mcp_urls(
            server,
            context={
                "client_id": CONFORMANCE_TEST_CLIENT_ID,
                "idp_client_id": IDP_CLIENT_ID,
                "idp_id_token": id_token,
                "idp_issuer": idp.get_url(),
                "idp_token_endpoint": f"{idp.get_url()}/token",
                "auth_server_url": get_auth_url(),
            },
        )
