"""Machine-to-machine client_credentials flows.

The client is given its credentials out of band through the scenario
context rather than registering dynamically.
"""

import base64
import binascii
import time
from typing import Optional

import jwt

from ... import spec_references as refs
from ...models import CheckStatus, ScenarioUrls
from ...servers.auth_server import GRANT_CLIENT_CREDENTIALS, AuthServerOptions, TokenError, TokenGrant, TokenRequest
from ..base import ExpectedCheck
from .flow import AuthScenario
from .signing import CLOCK_TOLERANCE_SECONDS, ES256, SigningKeyPair, issuer_audiences

CONFORMANCE_TEST_CLIENT_ID = "conformance-test-client"
CONFORMANCE_TEST_CLIENT_SECRET = "conformance-test-secret"
JWT_BEARER_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class ClientCredentialsScenario(AuthScenario):
    """Shared grant-type gate for the client_credentials variants."""

    client_auth_reference = refs.SEP_1046_CLIENT_CREDENTIALS

    def _reject_grant_type(self, request: TokenRequest) -> Optional[TokenError]:
        if request.grant_type == GRANT_CLIENT_CREDENTIALS:
            return None
        self.ledger.record(
            id="client-credentials-grant-type",
            name="ClientCredentialsGrantType",
            description=f"Expected grant_type=client_credentials, got {request.grant_type}",
            status=CheckStatus.FAILURE,
            spec_references=[refs.OAUTH_2_1_CLIENT_CREDENTIALS, refs.SEP_1046_CLIENT_CREDENTIALS],
            details={"expected": GRANT_CLIENT_CREDENTIALS, "actual": request.grant_type},
            timestamp=request.timestamp,
        )
        return TokenError("unsupported_grant_type", "Only client_credentials grant is supported")

    def _fail(self, check_id: str, name: str, request: TokenRequest, description: str, details=None) -> TokenError:
        """Record a FAILURE and answer 401 invalid_client."""
        self.ledger.record(
            id=check_id,
            name=name,
            description=description,
            status=CheckStatus.FAILURE,
            spec_references=[self.client_auth_reference],
            details=details,
            timestamp=request.timestamp,
        )
        return TokenError("invalid_client", description, 401)

    @staticmethod
    def _grant(request: TokenRequest) -> TokenGrant:
        return TokenGrant(token=f"cc-token-{int(time.time() * 1000)}", scopes=(request.scope or "").split())


class ClientCredentialsJwtScenario(ClientCredentialsScenario):
    name = "auth/client-credentials-jwt"
    description = "Tests OAuth client_credentials flow with private_key_jwt authentication (SEP-1046)"
    client_auth_reference = refs.RFC_JWT_CLIENT_AUTH
    expected_checks = [
        ExpectedCheck(
            "client-credentials-jwt-verified",
            name="ClientCredentialsJwtVerified",
            description="Client did not make a client_credentials token request",
            spec_references=(refs.OAUTH_2_1_CLIENT_CREDENTIALS, refs.SEP_1046_CLIENT_CREDENTIALS),
        )
    ]

    def _verify_assertion(self, keys: SigningKeyPair, request: TokenRequest):
        rejected = self._reject_grant_type(request)
        if rejected:
            return rejected

        assertion_type = request.body.get("client_assertion_type")
        if assertion_type != JWT_BEARER_ASSERTION_TYPE:
            return self._fail(
                "client-credentials-assertion-type",
                "ClientCredentialsAssertionType",
                request,
                f"Invalid client_assertion_type: {assertion_type}",
                {"expected": JWT_BEARER_ASSERTION_TYPE, "actual": assertion_type},
            )

        try:
            # The audience must be the issuer identifier
            claims = keys.verify(
                request.body.get("client_assertion") or "",
                audience=issuer_audiences(request.auth_base_url),
                leeway=CLOCK_TOLERANCE_SECONDS,
            )
        except jwt.PyJWTError as e:
            return self._fail(
                "client-credentials-jwt-verified",
                "ClientCredentialsJwtVerified",
                request,
                f"JWT verification failed: {e}",
                {"error": str(e)},
            )

        for claim in ("iss", "sub"):
            if claims.get(claim) != CONFORMANCE_TEST_CLIENT_ID:
                return self._fail(
                    f"client-credentials-jwt-{claim}",
                    f"ClientCredentialsJwt{claim.capitalize()}",
                    request,
                    f"JWT {claim} claim '{claims.get(claim)}' does not match expected client_id "
                    f"'{CONFORMANCE_TEST_CLIENT_ID}'",
                    {"expected": CONFORMANCE_TEST_CLIENT_ID, "actual": claims.get(claim)},
                )

        self.ledger.record(
            id="client-credentials-jwt-verified",
            name="ClientCredentialsJwtVerified",
            description="Client successfully authenticated with signed JWT assertion",
            status=CheckStatus.SUCCESS,
            spec_references=[
                refs.OAUTH_2_1_CLIENT_CREDENTIALS,
                refs.SEP_1046_CLIENT_CREDENTIALS,
                refs.RFC_JWT_CLIENT_AUTH,
            ],
            details={"iss": claims.get("iss"), "sub": claims.get("sub"), "aud": claims.get("aud")},
            timestamp=request.timestamp,
        )
        return self._grant(request)

    async def setup(self) -> ScenarioUrls:
        keys = SigningKeyPair.generate()
        get_auth_url = await self.serve_auth(
            AuthServerOptions(
                grant_types_supported=[GRANT_CLIENT_CREDENTIALS],
                token_endpoint_auth_methods_supported=["private_key_jwt"],
                token_endpoint_auth_signing_alg_values_supported=[ES256],
                on_token_request=lambda request: self._verify_assertion(keys, request),
            )
        )
        server = await self.serve_resource(get_auth_url)
        return self.mcp_urls(
            server,
            context={
                "client_id": CONFORMANCE_TEST_CLIENT_ID,
                "private_key_pem": keys.private_pem(),
                "signing_algorithm": ES256,
            },
        )


class ClientCredentialsBasicScenario(ClientCredentialsScenario):
    name = "auth/client-credentials-basic"
    description = "Tests OAuth client_credentials flow with client_secret_basic authentication"
    expected_checks = [
        ExpectedCheck(
            "client-credentials-basic-auth",
            name="ClientCredentialsBasicAuth",
            description="Client did not make a client_credentials token request",
            spec_references=(refs.OAUTH_2_1_CLIENT_CREDENTIALS, refs.SEP_1046_CLIENT_CREDENTIALS),
        )
    ]

    def _verify_basic(self, request: TokenRequest):
        rejected = self._reject_grant_type(request)
        if rejected:
            return rejected

        header = request.authorization_header
        if not header or not header.startswith("Basic "):
            return self._fail(
                "client-credentials-basic-auth",
                "ClientCredentialsBasicAuth",
                request,
                "Missing or invalid Authorization header for Basic auth",
                {"expected": "Authorization: Basic <credentials>", "actual": header or "missing"},
            )

        try:
            decoded = base64.b64decode(header[len("Basic "):].strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            decoded = ""
        client_id, _, client_secret = decoded.partition(":")

        if client_id != CONFORMANCE_TEST_CLIENT_ID or client_secret != CONFORMANCE_TEST_CLIENT_SECRET:
            return self._fail(
                "client-credentials-basic-auth",
                "ClientCredentialsBasicAuth",
                request,
                "Invalid client credentials",
                {"expected": CONFORMANCE_TEST_CLIENT_ID, "clientId": client_id},
            )

        self.ledger.record(
            id="client-credentials-basic-auth",
            name="ClientCredentialsBasicAuth",
            description="Client successfully authenticated with client_secret_basic",
            status=CheckStatus.SUCCESS,
            spec_references=[refs.OAUTH_2_1_CLIENT_CREDENTIALS, refs.SEP_1046_CLIENT_CREDENTIALS],
            details={"clientId": client_id},
            timestamp=request.timestamp,
        )
        return self._grant(request)

    async def setup(self) -> ScenarioUrls:
        get_auth_url = await self.serve_auth(
            AuthServerOptions(
                grant_types_supported=[GRANT_CLIENT_CREDENTIALS],
                token_endpoint_auth_methods_supported=["client_secret_basic"],
                on_token_request=self._verify_basic,
            )
        )
        server = await self.serve_resource(get_auth_url)
        return self.mcp_urls(
            server,
            context={"client_id": CONFORMANCE_TEST_CLIENT_ID, "client_secret": CONFORMANCE_TEST_CLIENT_SECRET},
        )
