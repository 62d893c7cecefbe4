"""Tests for the mock MCP resource server, its auth policies and token verifier."""

import pytest

from mcp_conformance.models import CheckStatus
from mcp_conformance.servers.auth_policies import NoAuthPolicy, build_www_authenticate
from mcp_conformance.servers.mcp_endpoint import McpEndpoint, ToolSpec
from mcp_conformance.servers.resource_server import (
    ROOT_PRM_PATH,
    ResourceServerOptions,
    add_trap,
    create_resource_server,
    prm_resource,
)
from mcp_conformance.servers.token_verifier import InvalidTokenError, MockTokenVerifier

from clients import parse_challenge

AUTH_URL = "http://auth.example"
INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {"protocolVersion": "2025-11-25", "capabilities": {}, "clientInfo": {"name": "t", "version": "1"}},
}


def rpc(method, request_id=1, params=None):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def echo_tool():
    return ToolSpec(
        name="echo",
        description="Echo",
        handler=lambda arguments: {"content": [{"type": "text", "text": arguments.get("text", "")}]},
    )


class TestTokenVerifier:
    """Test bearer token verification."""

    def test_registered_and_prefixed_tokens(self, ledger):
        """Test registered tokens keep their scopes and test-token prefixes are accepted."""
        verifier = MockTokenVerifier(ledger)
        verifier.register_token("abc", ["mcp:basic"])

        assert verifier.verify("abc").scopes == ["mcp:basic"]
        assert verifier.verify("test-token").scopes == []
        assert [c.id for c in ledger] == ["valid-bearer-token", "valid-bearer-token"]

    def test_unknown_token(self, ledger):
        """Test an unknown token raises and records a FAILURE."""
        verifier = MockTokenVerifier(ledger)
        with pytest.raises(InvalidTokenError):
            verifier.verify("nope")
        assert ledger.find("invalid-bearer-token").status == CheckStatus.FAILURE


class TestWwwAuthenticate:
    """Test challenge rendering."""

    def test_full_challenge(self):
        """Test every parameter is quoted and comma-separated."""
        header = build_www_authenticate("insufficient_scope", "Need more", "a b", "http://x/prm")
        assert header == (
            'Bearer error="insufficient_scope", error_description="Need more", '
            'scope="a b", resource_metadata="http://x/prm"'
        )

    def test_bare_challenge(self):
        """Test a challenge without parameters."""
        assert build_www_authenticate() == "Bearer"


class TestResourceServer:
    """Test PRM serving and bearer enforcement."""

    @pytest.mark.asyncio
    async def test_missing_token_challenge(self, ledger, base_url, asgi_client):
        """Test 401 cites the path-based PRM and reaches no verifier."""
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL)
        async with asgi_client(app) as client:
            response = await client.post("/mcp", json=INITIALIZE)

        assert response.status_code == 401
        challenge = parse_challenge(response.headers["www-authenticate"])
        assert challenge["error"] == "invalid_token"
        assert challenge["resource_metadata"] == f"{base_url()}/.well-known/oauth-protected-resource/mcp"
        assert "scope" not in challenge
        assert not ledger.has("invalid-bearer-token")
        assert ledger.has("incoming-request")

    @pytest.mark.asyncio
    async def test_prm_document(self, ledger, base_url, asgi_client):
        """Test PRM advertises the MCP endpoint and the authorization server."""
        options = ResourceServerOptions(scopes_supported=["mcp:basic"])
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL, options)
        async with asgi_client(app) as client:
            response = await client.get("/.well-known/oauth-protected-resource/mcp")

        assert response.json() == {
            "resource": f"{base_url()}/mcp",
            "authorization_servers": [AUTH_URL],
            "scopes_supported": ["mcp:basic"],
        }
        assert ledger.find("prm-pathbased-requested").status == CheckStatus.SUCCESS

    def test_prm_resource_for_root_location(self):
        """Test root PRM names the origin, other locations the endpoint."""
        assert prm_resource("http://h:1", ROOT_PRM_PATH) == "http://h:1"
        assert prm_resource("http://h:1", "/custom/metadata.json") == "http://h:1/mcp"

    @pytest.mark.asyncio
    async def test_valid_token_and_scopes(self, ledger, base_url, asgi_client):
        """Test a token lacking required scopes gets 403 naming them."""
        verifier = MockTokenVerifier(ledger)
        verifier.register_token("weak", ["mcp:basic"])
        verifier.register_token("strong", ["mcp:basic", "mcp:write"])
        options = ResourceServerOptions(
            required_scopes=["mcp:basic", "mcp:write"],
            include_scope_in_www_auth=True,
            token_verifier=verifier,
        )
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL, options)
        async with asgi_client(app) as client:
            anonymous = await client.post("/mcp", json=INITIALIZE)
            weak = await client.post("/mcp", json=INITIALIZE, headers={"Authorization": "Bearer weak"})
            strong = await client.post("/mcp", json=INITIALIZE, headers={"Authorization": "Bearer strong"})

        assert parse_challenge(anonymous.headers["www-authenticate"])["scope"] == "mcp:basic mcp:write"
        assert weak.status_code == 403
        assert parse_challenge(weak.headers["www-authenticate"])["error"] == "insufficient_scope"
        assert strong.status_code == 200
        assert strong.json()["result"]["serverInfo"]["name"] == "auth-prm-pathbased-server"

    @pytest.mark.asyncio
    async def test_invalid_token(self, ledger, base_url, asgi_client):
        """Test an unknown token is 401 and recorded."""
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL)
        async with asgi_client(app) as client:
            response = await client.post("/mcp", json=INITIALIZE, headers={"Authorization": "Bearer bogus"})

        assert response.status_code == 401
        assert ledger.find("invalid-bearer-token").status == CheckStatus.FAILURE

    @pytest.mark.asyncio
    async def test_method_scope_policy(self, ledger, base_url, asgi_client):
        """Test initialize is public and tools/call needs its own scopes."""
        verifier = MockTokenVerifier(ledger)
        verifier.register_token("basic", ["mcp:basic"])
        options = ResourceServerOptions(
            required_scopes=["mcp:basic"],
            scopes_by_method={"tools/call": ["mcp:basic", "mcp:write"]},
            token_verifier=verifier,
            tools=[echo_tool()],
        )
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL, options)
        auth = {"Authorization": "Bearer basic"}
        async with asgi_client(app) as client:
            initialize = await client.post("/mcp", json=INITIALIZE)
            listing = await client.post("/mcp", json=rpc("tools/list"))
            listed = await client.post("/mcp", json=rpc("tools/list"), headers=auth)
            call = await client.post(
                "/mcp", json=rpc("tools/call", params={"name": "echo", "arguments": {}}), headers=auth
            )

        assert initialize.status_code == 200
        assert listing.status_code == 401
        assert parse_challenge(listing.headers["www-authenticate"])["scope"] == "mcp:basic"
        assert listed.json()["result"]["tools"][0]["name"] == "echo"
        assert call.status_code == 403
        assert parse_challenge(call.headers["www-authenticate"])["scope"] == "mcp:basic mcp:write"

    @pytest.mark.asyncio
    async def test_parse_error_before_auth(self, ledger, base_url, asgi_client):
        """Test malformed JSON is answered -32700 without a challenge."""
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL)
        async with asgi_client(app) as client:
            response = await client.post("/mcp", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    @pytest.mark.asyncio
    async def test_get_is_not_allowed(self, ledger, base_url, asgi_client):
        """Test the MCP route offers no SSE stream."""
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL)
        async with asgi_client(app) as client:
            response = await client.get("/mcp")
        assert response.status_code == 405
        assert response.headers["allow"] == "POST"

    @pytest.mark.asyncio
    async def test_trap(self, ledger, base_url, asgi_client):
        """Test a trap records a FAILURE and answers 404."""
        app = create_resource_server(ledger, base_url, lambda: AUTH_URL)
        add_trap(app, ROOT_PRM_PATH, ledger, "prm-priority-order", "PRM Priority Order", "root probed",
                 error_description="not here")
        async with asgi_client(app) as client:
            response = await client.get(ROOT_PRM_PATH)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
        assert ledger.find("prm-priority-order").status == CheckStatus.FAILURE


class TestMcpEndpoint:
    """Test the JSON-RPC dispatcher behind NoAuthPolicy."""

    @pytest.fixture
    def app(self, ledger, base_url):
        endpoint = McpEndpoint("endpoint-test", tools=[echo_tool()])
        options = ResourceServerOptions(prm_path=None, auth_policy=NoAuthPolicy(), mcp_endpoint=endpoint)
        return create_resource_server(ledger, base_url, base_url, options)

    @pytest.mark.asyncio
    async def test_dispatch(self, app, asgi_client):
        """Test initialize, ping, tools and unknown methods."""
        async with asgi_client(app) as client:
            initialize = (await client.post("/mcp", json=INITIALIZE)).json()
            ping = (await client.post("/mcp", json=rpc("ping", 2))).json()
            call = (await client.post(
                "/mcp", json=rpc("tools/call", 3, {"name": "echo", "arguments": {"text": "hi"}})
            )).json()
            unknown_tool = (await client.post("/mcp", json=rpc("tools/call", 4, {"name": "nope"}))).json()
            unknown = (await client.post("/mcp", json=rpc("resources/list", 5))).json()
            notification = await client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert initialize["result"]["protocolVersion"] == "2025-11-25"
        assert initialize["result"]["capabilities"] == {"tools": {}}
        assert ping == {"jsonrpc": "2.0", "id": 2, "result": {}}
        assert call["result"]["content"][0]["text"] == "hi"
        assert unknown_tool["error"]["code"] == -32602
        assert unknown["error"]["code"] == -32601
        assert notification.status_code == 202

    @pytest.mark.asyncio
    async def test_unsupported_version_gets_latest(self, app, asgi_client):
        """Test version negotiation falls back to the latest supported version."""
        message = {**INITIALIZE, "params": {**INITIALIZE["params"], "protocolVersion": "1999-01-01"}}
        async with asgi_client(app) as client:
            result = (await client.post("/mcp", json=message)).json()["result"]
        assert result["protocolVersion"] == "2025-11-25"

    @pytest.mark.asyncio
    async def test_invalid_requests(self, app, asgi_client):
        """Test batches and non-JSON-RPC objects are rejected."""
        async with asgi_client(app) as client:
            batch = await client.post("/mcp", json=[INITIALIZE])
            bad = await client.post("/mcp", json={"id": 7, "method": "ping"})

        assert batch.status_code == 400
        assert batch.json()["error"]["code"] == -32600
        assert bad.status_code == 400
        assert bad.json()["id"] == 7
