"""2025-03-26 authorization behaviour: no Protected Resource Metadata.

Clients built against the older revision discover the authorization server
on the MCP server's own origin, or fall back to fixed endpoint paths when no
metadata is served at all.
"""

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse

from ... import spec_references as refs
from ...models import CheckStatus, ScenarioUrls
from ...servers.auth_server import (
    AUTHORIZATION_CODE,
    AuthServerOptions,
    add_query,
    create_auth_router,
    oauth_error,
    read_params,
)
from ...servers.resource_server import MCP_PATH, ROOT_AS_METADATA_PATH, ResourceServerOptions, create_resource_server
from ..base import expect
from .flow import STANDARD_FLOW_CHECKS, AuthScenario


class Auth20250326OAuthMetadataBackcompatScenario(AuthScenario):
    name = "auth/2025-03-26-oauth-metadata-backcompat"
    description = (
        "Tests 2025-03-26 spec OAuth flow: no PRM (Protected Resource Metadata), "
        "OAuth metadata at root location"
    )
    expected_checks = expect(*STANDARD_FLOW_CHECKS, spec_references=[refs.LEGACY_2025_03_26_AUTH_DISCOVERY])

    async def setup(self) -> ScenarioUrls:
        server = self.new_server("mcp")
        verifier = self.shared_verifier()

        app = create_resource_server(
            self.ledger,
            server.get_url,
            server.get_url,
            ResourceServerOptions(prm_path=None, token_verifier=verifier),
        )
        # The resource server already logs every request; the /oauth prefix
        # keeps the endpoints clear of the fixed fallback paths
        app.include_router(
            create_auth_router(
                self.ledger,
                server.get_url,
                AuthServerOptions(logging_enabled=False, route_prefix="/oauth", token_verifier=verifier),
            )
        )
        await server.start(app)
        return ScenarioUrls(server_url=f"{server.get_url()}{MCP_PATH}")


class Auth20250326OAuthEndpointFallbackScenario(AuthScenario):
    name = "auth/2025-03-26-oauth-endpoint-fallback"
    description = (
        "Tests OAuth flow with no metadata endpoints, relying on fallback to standard "
        "OAuth endpoints at server root (2025-03-26 spec behavior)"
    )
    expected_checks = expect("client-registration", "authorization-request", "token-request")

    async def setup(self) -> ScenarioUrls:
        server = self.new_server("mcp")
        ledger = self.ledger

        app = create_resource_server(
            ledger,
            server.get_url,
            server.get_url,
            ResourceServerOptions(prm_path=None, token_verifier=self.shared_verifier()),
        )

        @app.get(ROOT_AS_METADATA_PATH)
        async def metadata_probe(request: Request):
            # Probing before falling back is allowed; the probe is only noted
            ledger.record(
                id="oauth-metadata-probe",
                name="OAuthMetadataProbe",
                description="Client probed for authorization server metadata before using fallback endpoints",
                status=CheckStatus.INFO,
                spec_references=[refs.LEGACY_2025_03_26_AUTH_DISCOVERY],
                details={"path": request.url.path},
            )
            return oauth_error("not_found", "No authorization server metadata", 404)

        @app.get("/authorize")
        async def authorize(request: Request):
            query = dict(request.query_params)
            ledger.record(
                id="authorization-request",
                name="AuthorizationRequest",
                description="Client made authorization request to fallback endpoint",
                status=CheckStatus.SUCCESS,
                spec_references=[refs.LEGACY_2025_03_26_AUTH_URL_FALLBACK],
                details={
                    "response_type": query.get("response_type"),
                    "client_id": query.get("client_id"),
                    "redirect_uri": query.get("redirect_uri"),
                    "state": query.get("state"),
                    "code_challenge": "present" if query.get("code_challenge") else "missing",
                    "code_challenge_method": query.get("code_challenge_method"),
                },
            )
            redirect_uri = query.get("redirect_uri")
            if not redirect_uri:
                return oauth_error("invalid_request", "Missing redirect_uri")
            location = add_query(redirect_uri, code=AUTHORIZATION_CODE, state=query.get("state"))
            return RedirectResponse(url=location, status_code=302)

        @app.post("/token")
        async def token(request: Request):
            body = await read_params(request)
            ledger.record(
                id="token-request",
                name="TokenRequest",
                description="Client requested access token from fallback endpoint",
                status=CheckStatus.SUCCESS,
                spec_references=[refs.LEGACY_2025_03_26_AUTH_URL_FALLBACK],
                details={"endpoint": "/token", "grantType": body.get("grant_type")},
            )
            return JSONResponse(content={"access_token": "test-token", "token_type": "Bearer", "expires_in": 3600})

        @app.post("/register")
        async def register(request: Request):
            metadata = await read_params(request)
            ledger.record(
                id="client-registration",
                name="ClientRegistration",
                description="Client registered with authorization server at fallback endpoint",
                status=CheckStatus.SUCCESS,
                spec_references=[refs.LEGACY_2025_03_26_AUTH_URL_FALLBACK],
                details={"endpoint": "/register", "clientName": metadata.get("client_name")},
            )
            return JSONResponse(
                status_code=201,
                content={
                    "client_id": "test-client-id",
                    "client_secret": "test-client-secret",
                    "client_name": metadata.get("client_name") or "test-client",
                    "redirect_uris": metadata.get("redirect_uris") or [],
                },
            )

        await server.start(app)
        return ScenarioUrls(server_url=f"{server.get_url()}{MCP_PATH}")
