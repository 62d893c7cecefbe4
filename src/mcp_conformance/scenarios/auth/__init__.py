"""Authorization scenarios: the engine plays server, the client-under-test authenticates."""

from .backcompat import Auth20250326OAuthEndpointFallbackScenario, Auth20250326OAuthMetadataBackcompatScenario
from .basic_dcr import AuthBasicDCRScenario
from .client_credentials import ClientCredentialsBasicScenario, ClientCredentialsJwtScenario
from .cross_app_access import CrossAppAccessCompleteFlowScenario
from .discovery_metadata import SCENARIO_CONFIGS, MetadataDiscoveryScenario, MetadataScenarioConfig
from .flow import AuthScenario
from .resource_mismatch import ResourceMismatchScenario
from .scope_handling import (
    ScopeFromScopesSupportedScenario,
    ScopeFromWwwAuthenticateScenario,
    ScopeOmittedWhenUndefinedScenario,
    ScopeRetryLimitScenario,
    ScopeStepUpAuthScenario,
)
from .token_endpoint_auth import CLIENT_SECRET_BASIC, CLIENT_SECRET_POST, PUBLIC_CLIENT, TokenEndpointAuthScenario

__all__ = [
    "Auth20250326OAuthEndpointFallbackScenario",
    "Auth20250326OAuthMetadataBackcompatScenario",
    "AuthBasicDCRScenario",
    "AuthScenario",
    "CLIENT_SECRET_BASIC",
    "CLIENT_SECRET_POST",
    "ClientCredentialsBasicScenario",
    "ClientCredentialsJwtScenario",
    "CrossAppAccessCompleteFlowScenario",
    "MetadataDiscoveryScenario",
    "MetadataScenarioConfig",
    "PUBLIC_CLIENT",
    "ResourceMismatchScenario",
    "SCENARIO_CONFIGS",
    "ScopeFromScopesSupportedScenario",
    "ScopeFromWwwAuthenticateScenario",
    "ScopeOmittedWhenUndefinedScenario",
    "ScopeRetryLimitScenario",
    "ScopeStepUpAuthScenario",
    "TokenEndpointAuthScenario",
]
