"""Scope selection, step-up and retry-limit scenarios.

Scope selection is a SHOULD-level requirement, so a client that picks the
wrong scope gets a WARNING; only a flow that never reaches the authorization
endpoint fails outright.
"""

import threading
from typing import List

from ... import spec_references as refs
from ...models import CheckStatus, ConformanceCheck, ScenarioUrls
from ...servers.auth_server import AuthorizationRequest, AuthServerOptions, TokenGrant, TokenRequest
from ...servers.mcp_endpoint import ToolSpec
from ...servers.resource_server import PATH_BASED_PRM_PATH, ResourceServerOptions
from ..base import ExpectedCheck
from .flow import AuthScenario


def requested_scopes(request: AuthorizationRequest) -> List[str]:
    return request.scope.split() if request.scope else []


def _echo_tool() -> ToolSpec:
    def handler(arguments):
        return {"content": [{"type": "text", "text": "test tool called"}]}

    return ToolSpec(name="test-tool", description="A tool that requires mcp:write", handler=handler)


class ScopeFromWwwAuthenticateScenario(AuthScenario):
    name = "auth/scope-from-www-authenticate"
    description = "Tests that client uses scope parameter from WWW-Authenticate header when provided"
    expected_checks = [
        ExpectedCheck(
            "scope-from-www-authenticate",
            name="Client scope selection from WWW-Authenticate header",
            description="Client never made an authorization request",
            spec_references=(refs.MCP_SCOPE_SELECTION_STRATEGY,),
        )
    ]

    EXPECTED_SCOPE = "mcp:basic"

    async def setup(self) -> ScenarioUrls:
        ledger = self.ledger
        expected = self.EXPECTED_SCOPE

        def on_authorization_request(request: AuthorizationRequest):
            # The challenge scope must be used as-is, not widened or narrowed
            exact = sorted(requested_scopes(request)) == sorted(expected.split())
            ledger.record(
                id="scope-from-www-authenticate",
                name="Client scope selection from WWW-Authenticate header",
                description=(
                    "Client correctly used the scope parameter from the WWW-Authenticate header"
                    if exact
                    else f"Client SHOULD request exactly the WWW-Authenticate scope {expected!r}, "
                    f"requested {request.scope or 'none'!r}"
                ),
                status=CheckStatus.SUCCESS if exact else CheckStatus.WARNING,
                spec_references=[refs.MCP_SCOPE_SELECTION_STRATEGY],
                details={"expectedScope": expected, "requestedScope": request.scope or "none"},
                timestamp=request.timestamp,
            )

        get_auth_url = await self.serve_auth(AuthServerOptions(on_authorization_request=on_authorization_request))
        server = await self.serve_resource(
            get_auth_url,
            ResourceServerOptions(required_scopes=[expected], include_scope_in_www_auth=True),
        )
        return self.mcp_urls(server)


class ScopeFromScopesSupportedScenario(AuthScenario):
    name = "auth/scope-from-scopes-supported"
    description = (
        "Tests that client uses all scopes from scopes_supported when scope not in WWW-Authenticate header"
    )
    expected_checks = [
        ExpectedCheck(
            "scope-from-scopes-supported",
            name="Client scope selection from scopes_supported",
            description="Client never made an authorization request",
            spec_references=(refs.MCP_SCOPE_SELECTION_STRATEGY,),
        )
    ]

    SCOPES_SUPPORTED = ["mcp:basic", "mcp:read", "mcp:write"]

    async def setup(self) -> ScenarioUrls:
        ledger = self.ledger
        supported = list(self.SCOPES_SUPPORTED)

        def on_authorization_request(request: AuthorizationRequest):
            requested = requested_scopes(request)
            missing = [scope for scope in supported if scope not in requested]
            details = {"scopesSupported": " ".join(supported), "requestedScope": request.scope or "none"}
            if missing:
                details["missingScopes"] = " ".join(missing)
            ledger.record(
                id="scope-from-scopes-supported",
                name="Client scope selection from scopes_supported",
                description=(
                    "Client SHOULD use all scopes from scopes_supported when scope not available "
                    f"in WWW-Authenticate header, missing {' '.join(missing)!r}"
                    if missing
                    else "Client correctly used all scopes from scopes_supported in PRM when scope "
                    "not in WWW-Authenticate"
                ),
                status=CheckStatus.WARNING if missing else CheckStatus.SUCCESS,
                spec_references=[refs.MCP_SCOPE_SELECTION_STRATEGY],
                details=details,
                timestamp=request.timestamp,
            )

        get_auth_url = await self.serve_auth(AuthServerOptions(on_authorization_request=on_authorization_request))
        server = await self.serve_resource(
            get_auth_url,
            ResourceServerOptions(
                required_scopes=supported,
                scopes_supported=supported,
                include_scope_in_www_auth=False,
            ),
        )
        return self.mcp_urls(server)


class ScopeOmittedWhenUndefinedScenario(AuthScenario):
    name = "auth/scope-omitted-when-undefined"
    description = "Tests that client omits scope parameter when scopes_supported is undefined"
    expected_checks = [
        ExpectedCheck(
            "scope-omitted-when-undefined",
            name="Client scope omission when scopes_supported undefined",
            description="Client never made an authorization request",
            spec_references=(refs.MCP_SCOPE_SELECTION_STRATEGY,),
        )
    ]

    async def setup(self) -> ScenarioUrls:
        ledger = self.ledger

        def on_authorization_request(request: AuthorizationRequest):
            omitted = not (request.scope or "").strip()
            ledger.record(
                id="scope-omitted-when-undefined",
                name="Client scope omission when scopes_supported undefined",
                description=(
                    "Client correctly omitted scope parameter when scopes_supported is undefined"
                    if omitted
                    else "Client SHOULD omit scope parameter when scopes_supported is undefined "
                    f"and scope not in WWW-Authenticate, sent {request.scope!r}"
                ),
                status=CheckStatus.SUCCESS if omitted else CheckStatus.WARNING,
                spec_references=[refs.MCP_SCOPE_SELECTION_STRATEGY],
                details={"expected": "omitted", "scopeParameter": "omitted" if omitted else request.scope},
                timestamp=request.timestamp,
            )

        get_auth_url = await self.serve_auth(AuthServerOptions(on_authorization_request=on_authorization_request))
        server = await self.serve_resource(get_auth_url, ResourceServerOptions(include_scope_in_www_auth=False))
        return self.mcp_urls(server)


class ScopeStepUpAuthScenario(AuthScenario):
    """Different scope requirements per operation.

    ``tools/list`` needs ``mcp:basic`` (401 without a token) and
    ``tools/call`` needs ``mcp:basic mcp:write`` (403 with a basic token).
    The first authorization attempt must ask for the initial scope, the
    second must widen it.
    """

    name = "auth/scope-step-up"
    description = "Tests that client handles step-up authentication with different scope requirements per operation"

    INITIAL_SCOPES = ["mcp:basic"]
    ESCALATED_SCOPES = ["mcp:basic", "mcp:write"]

    expected_checks = [
        ExpectedCheck(
            "scope-step-up-initial",
            name="Client initial scope selection for step-up auth",
            description="Client did not make an initial authorization request",
            spec_references=(refs.MCP_SCOPE_SELECTION_STRATEGY,),
        ),
        ExpectedCheck(
            "scope-step-up-escalation",
            name="Client scope escalation for step-up auth",
            description="Client did not make a second authorization request for scope escalation",
            spec_references=(refs.MCP_SCOPE_SELECTION_STRATEGY,),
        ),
    ]

    def __init__(self, settings=None):
        super().__init__(settings)
        self._lock = threading.Lock()
        self._attempts: List[List[str]] = []

    def _next_attempt(self, scopes: List[str]):
        with self._lock:
            self._attempts.append(scopes)
            return len(self._attempts), (self._attempts[0] if len(self._attempts) > 1 else None)

    def _record_initial(self, request: AuthorizationRequest, scopes: List[str]) -> None:
        correct = set(scopes) == set(self.INITIAL_SCOPES)
        expected = " ".join(self.INITIAL_SCOPES)
        self.ledger.record(
            id="scope-step-up-initial",
            name="Client initial scope selection for step-up auth",
            description=(
                "Client correctly used scope from WWW-Authenticate header for initial auth"
                if correct
                else f"Client SHOULD use the scope parameter from the WWW-Authenticate header ({expected!r}), "
                f"requested {request.scope or 'none'!r}"
            ),
            status=CheckStatus.SUCCESS if correct else CheckStatus.WARNING,
            spec_references=[refs.MCP_SCOPE_SELECTION_STRATEGY],
            details={"expectedScope": expected, "requestedScope": request.scope or "none"},
            timestamp=request.timestamp,
        )

    def _record_escalation(self, request: AuthorizationRequest, scopes: List[str], first: List[str]) -> None:
        requested = set(scopes)
        escalated = requested > set(first) and set(self.ESCALATED_SCOPES) <= requested
        expected = " ".join(self.ESCALATED_SCOPES)
        self.ledger.record(
            id="scope-step-up-escalation",
            name="Client scope escalation for step-up auth",
            description=(
                "Client correctly escalated scopes for step-up authentication"
                if escalated
                else "Client SHOULD request additional scopes when receiving 403 with new scope requirements: "
                f"expected a superset of {' '.join(first)!r} containing {expected!r}, "
                f"requested {request.scope or 'none'!r}"
            ),
            status=CheckStatus.SUCCESS if escalated else CheckStatus.WARNING,
            spec_references=[refs.MCP_SCOPE_SELECTION_STRATEGY],
            details={
                "expectedScopes": expected,
                "previousScope": " ".join(first) or "none",
                "requestedScope": request.scope or "none",
            },
            timestamp=request.timestamp,
        )

    async def setup(self) -> ScenarioUrls:
        with self._lock:
            self._attempts = []

        def on_authorization_request(request: AuthorizationRequest):
            scopes = requested_scopes(request)
            ordinal, first = self._next_attempt(scopes)
            if ordinal == 1:
                self._record_initial(request, scopes)
            elif ordinal == 2:
                self._record_escalation(request, scopes, first)

        get_auth_url = await self.serve_auth(AuthServerOptions(on_authorization_request=on_authorization_request))
        server = await self.serve_resource(
            get_auth_url,
            ResourceServerOptions(
                prm_path=PATH_BASED_PRM_PATH,
                required_scopes=list(self.INITIAL_SCOPES),
                scopes_by_method={"tools/call": list(self.ESCALATED_SCOPES)},
                scopes_supported=list(self.ESCALATED_SCOPES),
                tools=[_echo_tool()],
            ),
        )
        return self.mcp_urls(server)


class ScopeRetryLimitScenario(AuthScenario):
    """A resource server that can never be satisfied.

    Every authenticated request is answered 403 with ``mcp:admin``, a scope
    the authorization server never grants. A well-behaved client gives up
    after a bounded number of authorization attempts.
    """

    name = "auth/scope-retry-limit"
    description = (
        "Tests that client limits authorization retries when the server keeps "
        "answering 403 insufficient_scope.\n\n"
        "**Expected:** at most 3 authorization attempts, then the client gives up"
    )
    allow_client_error = True

    UNSATISFIABLE_SCOPE = "mcp:admin"
    MAX_ATTEMPTS = 3

    def __init__(self, settings=None):
        super().__init__(settings)
        self._lock = threading.Lock()
        self._attempts = 0

    @property
    def attempts(self) -> int:
        with self._lock:
            return self._attempts

    async def setup(self) -> ScenarioUrls:
        with self._lock:
            self._attempts = 0
        unsatisfiable = self.UNSATISFIABLE_SCOPE

        def on_authorization_request(request: AuthorizationRequest):
            with self._lock:
                self._attempts += 1

        def on_token_request(request: TokenRequest):
            granted = [s for s in (request.scope or "").split() if s != unsatisfiable] or ["mcp:basic"]
            return TokenGrant(token=f"test-token-retry-{self.attempts}", scopes=granted)

        get_auth_url = await self.serve_auth(
            AuthServerOptions(on_authorization_request=on_authorization_request, on_token_request=on_token_request)
        )
        server = await self.serve_resource(
            get_auth_url,
            ResourceServerOptions(required_scopes=[unsatisfiable], scopes_by_method={}),
        )
        return self.mcp_urls(server)

    def post_hoc_checks(self, checks: List[ConformanceCheck]) -> List[ConformanceCheck]:
        attempts = self.attempts
        within_limit = 1 <= attempts <= self.MAX_ATTEMPTS
        if attempts == 0:
            description = "Client never attempted authorization after the 401 challenge"
        elif within_limit:
            description = f"Client stopped after {attempts} authorization attempt(s)"
        else:
            description = (
                f"Client SHOULD NOT retry authorization indefinitely: expected at most "
                f"{self.MAX_ATTEMPTS} attempts, observed {attempts}"
            )
        return [
            ConformanceCheck(
                id="scope-retry-limit",
                name="Client authorization retry limit",
                description=description,
                status=CheckStatus.SUCCESS if within_limit else CheckStatus.FAILURE,
                spec_references=[refs.MCP_SCOPE_CHALLENGE_HANDLING],
                details={"expected": f"1-{self.MAX_ATTEMPTS} attempts", "attempts": attempts},
            )
        ]
