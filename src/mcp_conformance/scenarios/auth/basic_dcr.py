"""Baseline authorization-code flow with dynamic client registration."""

from ...models import ScenarioUrls
from ..base import expect
from .flow import ROOT_PRM_TRAP, STANDARD_FLOW_CHECKS, AuthScenario


class AuthBasicDCRScenario(AuthScenario):
    name = "auth/basic-dcr"
    description = (
        "Tests Basic OAuth flow with DCR, PRM at path-based location, "
        "OAuth metadata at root location, and no scopes required"
    )
    expected_checks = expect("prm-pathbased-requested", *STANDARD_FLOW_CHECKS)

    async def setup(self) -> ScenarioUrls:
        get_auth_url = await self.serve_auth()
        server = await self.serve_resource(get_auth_url, traps=[ROOT_PRM_TRAP])
        return self.mcp_urls(server)
