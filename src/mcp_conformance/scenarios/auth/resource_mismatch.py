"""Resource mismatch: PRM names a resource other than the server being accessed.

A conforming client validates the advertised ``resource`` against the URL it
is connecting to and aborts before authorization, so the only evidence of
conformance is the absence of an authorization request.
"""

import threading
import time
from typing import List

from ... import spec_references as refs
from ...models import CheckStatus, ConformanceCheck, ScenarioUrls
from ...servers.auth_server import AuthorizationRequest, AuthServerOptions, RegistrationResult
from ...servers.resource_server import ResourceServerOptions
from .flow import AuthScenario

EVIL_RESOURCE = "https://evil.example.com/mcp"


class ResourceMismatchScenario(AuthScenario):
    name = "auth/resource-mismatch"
    description = "Tests that client rejects when PRM resource does not match server URL"
    allow_client_error = True

    def __init__(self, settings=None):
        super().__init__(settings)
        self._lock = threading.Lock()
        self._authorization_requested = False
        self.advertised_resource = EVIL_RESOURCE

    @property
    def authorization_requested(self) -> bool:
        with self._lock:
            return self._authorization_requested

    async def setup(self) -> ScenarioUrls:
        with self._lock:
            self._authorization_requested = False

        def on_authorization_request(request: AuthorizationRequest):
            with self._lock:
                self._authorization_requested = True

        def on_registration_request(metadata):
            return RegistrationResult(
                client_id=f"test-client-{int(time.time() * 1000)}",
                token_endpoint_auth_method="none",
            )

        get_auth_url = await self.serve_auth(
            AuthServerOptions(
                token_endpoint_auth_methods_supported=["none"],
                on_authorization_request=on_authorization_request,
                on_registration_request=on_registration_request,
            )
        )
        server = await self.serve_resource(
            get_auth_url,
            ResourceServerOptions(prm_resource_override=self.advertised_resource),
        )
        return self.mcp_urls(server)

    def post_hoc_checks(self, checks: List[ConformanceCheck]) -> List[ConformanceCheck]:
        if any(check.id == "resource-mismatch-rejected" for check in checks):
            return []
        rejected = not self.authorization_requested
        return [
            ConformanceCheck(
                id="resource-mismatch-rejected",
                name="Client rejects mismatched resource",
                description=(
                    "Client correctly rejected authorization when PRM resource does not match server URL"
                    if rejected
                    else "Client MUST validate that PRM resource matches the server URL before "
                    "proceeding with authorization, but it made an authorization request"
                ),
                status=CheckStatus.SUCCESS if rejected else CheckStatus.FAILURE,
                spec_references=[refs.RFC_8707_RESOURCE_INDICATORS, refs.MCP_RESOURCE_PARAMETER],
                details={
                    "prmResource": self.advertised_resource,
                    "expected": "no authorization request",
                    "authorizationRequestMade": not rejected,
                },
            )
        ]
