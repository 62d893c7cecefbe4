"""Metadata discovery variants.

| Scenario         | PRM location                              | In WWW-Auth | OAuth metadata location                         |
|------------------|-------------------------------------------|-------------|-------------------------------------------------|
| metadata-default | /.well-known/oauth-protected-resource/mcp | Yes         | /.well-known/oauth-authorization-server         |
| metadata-var1    | /.well-known/oauth-protected-resource/mcp | No          | /.well-known/openid-configuration               |
| metadata-var2    | /.well-known/oauth-protected-resource     | No          | /.well-known/oauth-authorization-server/tenant1 |
| metadata-var3    | /custom/metadata/location.json            | Yes         | /tenant1/.well-known/openid-configuration       |
"""

from dataclasses import dataclass
from typing import List

from ...models import ScenarioUrls
from ...servers.auth_server import AuthServerOptions
from ...servers.resource_server import PATH_BASED_PRM_PATH, ROOT_PRM_PATH, ResourceServerOptions
from ..base import ExpectedCheck, expect
from .flow import ROOT_AS_METADATA_TRAP, ROOT_PRM_TRAP, STANDARD_FLOW_CHECKS, AuthScenario, Trap


@dataclass(frozen=True)
class MetadataScenarioConfig:
    name: str
    prm_location: str
    in_www_auth: bool
    oauth_metadata_location: str
    auth_route_prefix: str = ""
    trap_root_prm: bool = False


SCENARIO_CONFIGS = [
    MetadataScenarioConfig(
        name="metadata-default",
        prm_location=PATH_BASED_PRM_PATH,
        in_www_auth=True,
        oauth_metadata_location="/.well-known/oauth-authorization-server",
        trap_root_prm=True,
    ),
    MetadataScenarioConfig(
        name="metadata-var1",
        prm_location=PATH_BASED_PRM_PATH,
        in_www_auth=False,
        oauth_metadata_location="/.well-known/openid-configuration",
    ),
    MetadataScenarioConfig(
        name="metadata-var2",
        prm_location=ROOT_PRM_PATH,
        in_www_auth=False,
        oauth_metadata_location="/.well-known/oauth-authorization-server/tenant1",
        auth_route_prefix="/tenant1",
    ),
    MetadataScenarioConfig(
        name="metadata-var3",
        # Only reachable by following resource_metadata in the challenge
        prm_location="/custom/metadata/location.json",
        in_www_auth=True,
        oauth_metadata_location="/tenant1/.well-known/openid-configuration",
        auth_route_prefix="/tenant1",
    ),
]


class MetadataDiscoveryScenario(AuthScenario):
    """One row of the discovery table."""

    def __init__(self, config: MetadataScenarioConfig, settings=None):
        self.config = config
        self.name = f"auth/{config.name}"
        suffix = "" if config.in_www_auth else " (not in WWW-Authenticate)"
        self.description = (
            "Tests Basic OAuth metadata discovery flow.\n\n"
            f"**PRM:** {config.prm_location}{suffix}\n"
            f"**OAuth metadata:** {config.oauth_metadata_location}\n"
        )
        super().__init__(settings)

    @property
    def expected_checks(self) -> List[ExpectedCheck]:
        ids = list(STANDARD_FLOW_CHECKS)
        if self.config.prm_location == PATH_BASED_PRM_PATH:
            ids.insert(0, "prm-pathbased-requested")
        return expect(*ids)

    async def setup(self) -> ScenarioUrls:
        config = self.config
        auth_traps: List[Trap] = [ROOT_AS_METADATA_TRAP] if config.auth_route_prefix else []
        get_auth_url = await self.serve_auth(
            AuthServerOptions(
                metadata_path=config.oauth_metadata_location,
                is_openid_configuration="openid-configuration" in config.oauth_metadata_location,
                route_prefix=config.auth_route_prefix,
            ),
            issuer_path=config.auth_route_prefix,
            traps=auth_traps,
        )

        resource_traps: List[Trap] = [ROOT_PRM_TRAP] if config.trap_root_prm else []
        server = await self.serve_resource(
            get_auth_url,
            ResourceServerOptions(prm_path=config.prm_location, include_prm_in_www_auth=config.in_www_auth),
            traps=resource_traps,
        )
        return self.mcp_urls(server)

