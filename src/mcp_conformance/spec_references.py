"""Citations of the normative clauses enforced by conformance checks."""

from .models import SpecReference

_MCP_DRAFT_AUTH = "https://modelcontextprotocol.io/specification/draft/basic/authorization"
_MCP_2025_06_18 = "https://modelcontextprotocol.io/specification/2025-06-18"

RFC_PRM_DISCOVERY = SpecReference(
    id="RFC-9728",
    url="https://www.rfc-editor.org/rfc/rfc9728.html#section-3.1",
)
RFC_AUTH_SERVER_METADATA_REQUEST = SpecReference(
    id="RFC-8414-metadata-request",
    url="https://www.rfc-editor.org/rfc/rfc8414.html#section-3.1",
)
LEGACY_2025_03_26_AUTH_DISCOVERY = SpecReference(
    id="MCP-2025-03-26-Authorization-metadata-discovery",
    url="https://modelcontextprotocol.io/specification/2025-03-26/basic/authorization#server-metadata-discovery",
)
LEGACY_2025_03_26_AUTH_URL_FALLBACK = SpecReference(
    id="MCP-2025-03-26-Authorization-metadata-url-fallback",
    url=(
        "https://modelcontextprotocol.io/specification/2025-03-26/basic/authorization"
        "#fallbacks-for-servers-without-metadata-discovery"
    ),
)
MCP_PRM_DISCOVERY = SpecReference(
    id="MCP-2025-06-18-PRM-discovery",
    url=f"{_MCP_DRAFT_AUTH}#protected-resource-metadata-discovery-requirements",
)
MCP_AUTH_DISCOVERY = SpecReference(
    id="MCP-Authorization-metadata-discovery",
    url=f"{_MCP_DRAFT_AUTH}#authorization-server-metadata-discovery",
)
MCP_DCR = SpecReference(
    id="MCP-Dynamic-client-registration",
    url="https://modelcontextprotocol.io/specification/draft/basic/client#dynamic-client-registration",
)
OAUTH_2_1_AUTHORIZATION_ENDPOINT = SpecReference(
    id="OAUTH-2.1-authorization-endpoint",
    url="https://www.ietf.org/archive/id/draft-ietf-oauth-v2-1-13.html#name-authorization-endpoint",
)
OAUTH_2_1_TOKEN = SpecReference(
    id="OAUTH-2.1-token-request",
    url="https://www.ietf.org/archive/id/draft-ietf-oauth-v2-1-13.html#name-token-request",
)
OAUTH_2_1_CLIENT_CREDENTIALS = SpecReference(
    id="OAUTH-2.1-client-credentials-grant",
    url="https://www.ietf.org/archive/id/draft-ietf-oauth-v2-1-13.html#name-client-credentials-grant",
)
MCP_ACCESS_TOKEN_USAGE = SpecReference(
    id="MCP-Access-token-usage",
    url=f"{_MCP_DRAFT_AUTH}#access-token-usage",
)
MCP_SCOPE_SELECTION_STRATEGY = SpecReference(
    id="MCP-Scope-selection-strategy",
    url=f"{_MCP_DRAFT_AUTH}#scope-selection-strategy",
)
MCP_SCOPE_CHALLENGE_HANDLING = SpecReference(
    id="MCP-Scope-challenge-handling",
    url=f"{_MCP_DRAFT_AUTH}#scope-challenge-handling",
)
MCP_AUTH_ERROR_HANDLING = SpecReference(
    id="MCP-Auth-error-handling",
    url=f"{_MCP_DRAFT_AUTH}#error-handling",
)
MCP_PKCE = SpecReference(
    id="MCP-PKCE",
    url=f"{_MCP_DRAFT_AUTH}#authorization-code-protection",
)
RFC_8707_RESOURCE_INDICATORS = SpecReference(
    id="RFC-8707",
    url="https://www.rfc-editor.org/rfc/rfc8707.html",
)
MCP_RESOURCE_PARAMETER = SpecReference(
    id="MCP-Resource-parameter",
    url=f"{_MCP_DRAFT_AUTH}#resource-parameter-implementation",
)
SEP_1046_CLIENT_CREDENTIALS = SpecReference(
    id="SEP-1046",
    url="https://github.com/modelcontextprotocol/modelcontextprotocol/pull/1046",
)
RFC_JWT_CLIENT_AUTH = SpecReference(
    id="RFC-7523-client-auth",
    url="https://www.rfc-editor.org/rfc/rfc7523.html#section-2.2",
)
RFC_7523_JWT_BEARER = SpecReference(
    id="RFC-7523-jwt-bearer",
    url="https://www.rfc-editor.org/rfc/rfc7523.html#section-2.1",
)
RFC_8693_TOKEN_EXCHANGE = SpecReference(
    id="RFC-8693",
    url="https://www.rfc-editor.org/rfc/rfc8693.html",
)
SEP_990_ENTERPRISE_OAUTH = SpecReference(
    id="SEP-990",
    url="https://github.com/modelcontextprotocol/modelcontextprotocol/pull/990",
)

# Base protocol
MCP_LIFECYCLE = SpecReference(id="MCP-Lifecycle", url=f"{_MCP_2025_06_18}/basic/lifecycle")
MCP_INITIALIZE = SpecReference(id="MCP-Initialize", url=f"{_MCP_2025_06_18}/basic/lifecycle#initialization")
MCP_PING = SpecReference(id="MCP-Ping", url=f"{_MCP_2025_06_18}/basic/utilities/ping")
MCP_LOGGING = SpecReference(id="MCP-Logging", url=f"{_MCP_2025_06_18}/server/utilities/logging")
MCP_TOOLS = SpecReference(id="MCP-Tools", url=f"{_MCP_2025_06_18}/server/tools#calling-tools")
MCP_TOOLS_LIST = SpecReference(id="MCP-Tools-List", url=f"{_MCP_2025_06_18}/server/tools#listing-tools")
MCP_TOOLS_CALL = SpecReference(id="MCP-Tools-Call", url=f"{_MCP_2025_06_18}/server/tools#calling-tools")
MCP_RESOURCES_LIST = SpecReference(
    id="MCP-Resources-List", url=f"{_MCP_2025_06_18}/server/resources#listing-resources"
)
MCP_PROMPTS_LIST = SpecReference(id="MCP-Prompts-List", url=f"{_MCP_2025_06_18}/server/prompts#listing-prompts")
MCP_DNS_REBINDING_PROTECTION = SpecReference(
    id="MCP-DNS-Rebinding-Protection",
    url=(
        "https://modelcontextprotocol.io/specification/2025-11-25/basic/security_best_practices"
        "#local-mcp-server-compromise"
    ),
)
MCP_TRANSPORT_SECURITY = SpecReference(
    id="MCP-Transport-Security",
    url="https://modelcontextprotocol.io/specification/2025-11-25/basic/transports#security-warning",
)
