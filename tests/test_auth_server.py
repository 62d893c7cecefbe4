"""Tests for the mock authorization server."""

from urllib.parse import parse_qs, urlsplit

import pytest

from mcp_conformance.models import CheckStatus
from mcp_conformance.servers.auth_server import (
    AuthServerOptions,
    RegistrationResult,
    TokenError,
    TokenGrant,
    add_query,
    compute_s256_challenge,
    create_auth_server,
)
from mcp_conformance.servers.token_verifier import MockTokenVerifier

REDIRECT_URI = "http://localhost:3000/callback"

# RFC 7636 appendix B
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class TestHelpers:
    """Test PKCE and URL helpers."""

    def test_s256_challenge_matches_rfc_example(self):
        """Test the S256 transform against the RFC 7636 test vector."""
        assert compute_s256_challenge(RFC_VERIFIER) == RFC_CHALLENGE

    def test_add_query_keeps_existing_params(self):
        """Test redirect parameters are appended, empty values dropped."""
        url = add_query("http://localhost/cb?x=1", code="abc", state=None)
        query = parse_qs(urlsplit(url).query)
        assert query == {"x": ["1"], "code": ["abc"]}


class TestMetadata:
    """Test authorization server metadata."""

    @pytest.mark.asyncio
    async def test_default_metadata(self, ledger, base_url, asgi_client):
        """Test endpoints are built from the deferred base URL."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            response = await client.get("/.well-known/oauth-authorization-server")

        assert response.status_code == 200
        metadata = response.json()
        assert metadata["issuer"] == base_url()
        assert metadata["authorization_endpoint"] == f"{base_url()}/authorize"
        assert metadata["token_endpoint"] == f"{base_url()}/token"
        assert metadata["registration_endpoint"] == f"{base_url()}/register"
        assert metadata["code_challenge_methods_supported"] == ["S256"]
        assert "jwks_uri" not in metadata
        assert ledger.find("authorization-server-metadata").status == CheckStatus.SUCCESS
        assert ledger.has("incoming-auth-request")
        assert ledger.has("outgoing-auth-response")

    @pytest.mark.asyncio
    async def test_openid_and_prefix(self, ledger, base_url, asgi_client):
        """Test OpenID fields and route prefixes."""
        options = AuthServerOptions(
            metadata_path="/tenant1/.well-known/openid-configuration",
            is_openid_configuration=True,
            route_prefix="/tenant1",
            disable_dynamic_registration=True,
            code_challenge_methods_supported=None,
            scopes_supported=["mcp:basic"],
        )
        app = create_auth_server(ledger, base_url, options)
        async with asgi_client(app) as client:
            metadata = (await client.get("/tenant1/.well-known/openid-configuration")).json()

        assert metadata["authorization_endpoint"] == f"{base_url()}/tenant1/authorize"
        assert metadata["jwks_uri"].endswith("/.well-known/jwks.json")
        assert "registration_endpoint" not in metadata
        assert "code_challenge_methods_supported" not in metadata
        assert metadata["scopes_supported"] == ["mcp:basic"]

    @pytest.mark.asyncio
    async def test_logging_can_be_disabled(self, ledger, base_url, asgi_client):
        """Test no INFO transcript when logging is off."""
        app = create_auth_server(ledger, base_url, AuthServerOptions(logging_enabled=False))
        async with asgi_client(app) as client:
            await client.get("/.well-known/oauth-authorization-server")
        assert [c.id for c in ledger.snapshot()] == ["authorization-server-metadata"]


class TestAuthorize:
    """Test the authorization endpoint."""

    @pytest.mark.asyncio
    async def test_redirects_with_code_and_state(self, ledger, base_url, asgi_client):
        """Test a compliant request gets a 302 carrying code and state."""
        seen = []
        app = create_auth_server(ledger, base_url, AuthServerOptions(on_authorization_request=seen.append))
        async with asgi_client(app) as client:
            response = await client.get(
                "/authorize",
                params={
                    "response_type": "code",
                    "client_id": "c1",
                    "redirect_uri": REDIRECT_URI,
                    "state": "xyz",
                    "code_challenge": RFC_CHALLENGE,
                    "code_challenge_method": "S256",
                    "scope": "mcp:basic mcp:write",
                    "resource": "http://testserver/mcp",
                },
            )

        assert response.status_code == 302
        location = urlsplit(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == REDIRECT_URI
        assert parse_qs(location.query) == {"code": ["test-auth-code"], "state": ["xyz"]}

        assert ledger.find("pkce-code-challenge-sent").status == CheckStatus.SUCCESS
        assert ledger.find("pkce-s256-method-used").status == CheckStatus.SUCCESS
        assert seen[0].scope == "mcp:basic mcp:write"
        assert seen[0].resource == "http://testserver/mcp"
        assert seen[0].client_id == "c1"

    @pytest.mark.asyncio
    async def test_missing_pkce_fails(self, ledger, base_url, asgi_client):
        """Test no challenge and a plain method both fail."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            await client.get("/authorize", params={"redirect_uri": REDIRECT_URI, "code_challenge_method": "plain"})

        assert ledger.find("pkce-code-challenge-sent").status == CheckStatus.FAILURE
        pkce_method = ledger.find("pkce-s256-method-used")
        assert pkce_method.status == CheckStatus.FAILURE
        assert pkce_method.details["method"] == "plain"

    @pytest.mark.asyncio
    async def test_invalid_redirect_uri(self, ledger, base_url, asgi_client):
        """Test a relative redirect_uri is a FAILURE and a 400."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            response = await client.get("/authorize", params={"redirect_uri": "/callback"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"
        assert ledger.find("authorization-request-redirect-uri").status == CheckStatus.FAILURE


class TestToken:
    """Test the token endpoint."""

    async def _authorize(self, client, challenge=RFC_CHALLENGE, scope="mcp:basic"):
        params = {"redirect_uri": REDIRECT_URI, "state": "s", "scope": scope}
        if challenge:
            params.update(code_challenge=challenge, code_challenge_method="S256")
        await client.get("/authorize", params=params)

    @pytest.mark.asyncio
    async def test_issues_token_with_authorized_scopes(self, ledger, base_url, asgi_client):
        """Test the default token carries the scopes of the last authorization."""
        verifier = MockTokenVerifier(ledger)
        app = create_auth_server(ledger, base_url, AuthServerOptions(token_verifier=verifier))
        async with asgi_client(app) as client:
            await self._authorize(client)
            response = await client.post(
                "/token",
                data={
                    "grant_type": "authorization_code",
                    "code": "test-auth-code",
                    "code_verifier": RFC_VERIFIER,
                    "redirect_uri": REDIRECT_URI,
                },
            )

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        token = response.json()
        assert token["access_token"].startswith("test-token-")
        assert token["token_type"] == "Bearer"
        assert token["scope"] == "mcp:basic"
        assert ledger.find("pkce-code-verifier-sent").status == CheckStatus.SUCCESS
        assert ledger.find("pkce-verifier-matches-challenge").status == CheckStatus.SUCCESS
        assert verifier.verify(token["access_token"]).scopes == ["mcp:basic"]

    @pytest.mark.asyncio
    async def test_verifier_mismatch(self, ledger, base_url, asgi_client):
        """Test a wrong code_verifier fails the match check."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            await self._authorize(client)
            await client.post("/token", data={"grant_type": "authorization_code", "code_verifier": "wrong"})

        check = ledger.find("pkce-verifier-matches-challenge")
        assert check.status == CheckStatus.FAILURE
        assert check.description == "code_verifier does not match code_challenge"

    @pytest.mark.asyncio
    async def test_no_pkce_at_all(self, ledger, base_url, asgi_client):
        """Test missing challenge and verifier are both reported."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            await self._authorize(client, challenge=None)
            await client.post("/token", data={"grant_type": "authorization_code"})

        assert ledger.find("pkce-code-verifier-sent").status == CheckStatus.FAILURE
        check = ledger.find("pkce-verifier-matches-challenge")
        assert check.status == CheckStatus.FAILURE
        assert "Neither code_challenge nor code_verifier" in check.description

    @pytest.mark.asyncio
    @pytest.mark.parametrize("grant_type,error", [(None, "invalid_request"), ("password", "unsupported_grant_type")])
    async def test_bad_grant_type(self, ledger, base_url, asgi_client, grant_type, error):
        """Test unknown or missing grant types are rejected and recorded."""
        app = create_auth_server(ledger, base_url)
        data = {"grant_type": grant_type} if grant_type else {"code": "x"}
        async with asgi_client(app) as client:
            response = await client.post("/token", data=data)

        assert response.status_code == 400
        assert response.json()["error"] == error
        assert ledger.find("token-request-grant-type").status == CheckStatus.FAILURE

    @pytest.mark.asyncio
    async def test_token_hook_overrides_and_errors(self, ledger, base_url, asgi_client):
        """Test hooks can replace the token or answer an OAuth error."""
        answers = [TokenGrant(token="custom", scopes=["a"]), TokenError("invalid_client", "nope", 401)]
        requests = []

        async def hook(request):
            requests.append(request)
            return answers.pop(0)

        app = create_auth_server(ledger, base_url, AuthServerOptions(on_token_request=hook))
        async with asgi_client(app) as client:
            ok = await client.post("/token", data={"grant_type": "client_credentials", "scope": "a"},
                                   headers={"Authorization": "Basic Zm9vOmJhcg=="})
            failed = await client.post("/token", data={"grant_type": "client_credentials"})

        assert ok.json() == {"access_token": "custom", "token_type": "Bearer", "expires_in": 3600, "scope": "a"}
        assert failed.status_code == 401
        assert failed.json() == {"error": "invalid_client", "error_description": "nope"}
        assert requests[0].authorization_header == "Basic Zm9vOmJhcg=="
        assert requests[0].token_endpoint == f"{base_url()}/token"
        assert requests[0].auth_base_url == base_url()


class TestRegister:
    """Test dynamic client registration."""

    @pytest.mark.asyncio
    async def test_default_registration(self, ledger, base_url, asgi_client):
        """Test the default client id and echoed metadata."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            response = await client.post(
                "/register", json={"client_name": "my-client", "redirect_uris": [REDIRECT_URI]}
            )

        assert response.status_code == 201
        body = response.json()
        assert body["client_id"] == "test-client-id"
        assert body["client_secret"] == "test-client-secret"
        assert body["client_name"] == "my-client"
        assert body["redirect_uris"] == [REDIRECT_URI]
        assert ledger.find("client-registration").status == CheckStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_registration_hook(self, ledger, base_url, asgi_client):
        """Test a hook picks the client id and auth method."""
        options = AuthServerOptions(
            on_registration_request=lambda metadata: RegistrationResult("hooked", token_endpoint_auth_method="none")
        )
        app = create_auth_server(ledger, base_url, options)
        async with asgi_client(app) as client:
            body = (await client.post("/register", json={})).json()

        assert body["client_id"] == "hooked"
        assert "client_secret" not in body
        assert body["token_endpoint_auth_method"] == "none"
        assert body["client_name"] == "test-client"

    @pytest.mark.asyncio
    async def test_non_json_body(self, ledger, base_url, asgi_client):
        """Test a malformed registration body is a FAILURE and a 400."""
        app = create_auth_server(ledger, base_url)
        async with asgi_client(app) as client:
            response = await client.post(
                "/register", content=b"client_name=x", headers={"Content-Type": "application/x-www-form-urlencoded"}
            )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_client_metadata"
        assert ledger.find("client-registration").status == CheckStatus.FAILURE
