"""Per-request bearer enforcement strategies for the mock resource server.

A policy runs before the JSON-RPC handler and either lets the request
through (returns None) or answers it with a 401/403 challenge.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from .token_verifier import AccessTokenInfo, InvalidTokenError, MockTokenVerifier

logger = logging.getLogger(__name__)

UrlAccessor = Callable[[], Optional[str]]


def build_www_authenticate(
    error: Optional[str] = None,
    description: Optional[str] = None,
    scope: Optional[str] = None,
    resource_metadata: Optional[str] = None,
) -> str:
    """Render a Bearer challenge for the WWW-Authenticate header."""
    params = []
    if error:
        params.append(f'error="{error}"')
    if description:
        params.append(f'error_description="{description}"')
    if scope:
        params.append(f'scope="{scope}"')
    if resource_metadata:
        params.append(f'resource_metadata="{resource_metadata}"')
    if not params:
        return "Bearer"
    return "Bearer " + ", ".join(params)


def challenge(
    status_code: int,
    error: str,
    description: str,
    scope: Optional[str] = None,
    resource_metadata: Optional[str] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "error_description": description},
        headers={"WWW-Authenticate": build_www_authenticate(error, description, scope, resource_metadata)},
    )


def extract_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthPolicy(ABC):
    """Decides whether an MCP request may proceed."""

    @abstractmethod
    async def authorize(self, request: Request, rpc_method: Optional[str]) -> Optional[Response]:
        """Return a challenge response to reject the request, or None to allow it."""


class NoAuthPolicy(AuthPolicy):
    """Lets every request through."""

    async def authorize(self, request: Request, rpc_method: Optional[str]) -> Optional[Response]:
        return None


class BearerAuthPolicy(AuthPolicy):
    """Require a valid bearer token carrying a fixed set of scopes."""

    def __init__(
        self,
        verifier: MockTokenVerifier,
        required_scopes: Sequence[str] = (),
        get_resource_metadata_url: Optional[UrlAccessor] = None,
        include_scope_in_www_auth: bool = False,
    ):
        self.verifier = verifier
        self.required_scopes = list(required_scopes)
        self.get_resource_metadata_url = get_resource_metadata_url or (lambda: None)
        self.include_scope_in_www_auth = include_scope_in_www_auth

    def _scope_hint(self) -> Optional[str]:
        if self.include_scope_in_www_auth and self.required_scopes:
            return " ".join(self.required_scopes)
        return None

    async def authorize(self, request: Request, rpc_method: Optional[str]) -> Optional[Response]:
        token = extract_bearer_token(request)
        if token is None:
            return challenge(
                401, "invalid_token", "Missing Authorization header",
                scope=self._scope_hint(), resource_metadata=self.get_resource_metadata_url(),
            )
        try:
            info = self.verifier.verify(token)
        except InvalidTokenError as e:
            return challenge(
                401, "invalid_token", str(e),
                scope=self._scope_hint(), resource_metadata=self.get_resource_metadata_url(),
            )
        if not has_scopes(info, self.required_scopes):
            return challenge(
                403, "insufficient_scope", "Insufficient scope",
                scope=" ".join(self.required_scopes), resource_metadata=self.get_resource_metadata_url(),
            )
        return None


class MethodScopePolicy(AuthPolicy):
    """Scope requirements that depend on the JSON-RPC method.

    ``initialize`` and notifications are public. A missing token is
    challenged with ``default_scopes``; a token lacking the scopes of the
    method being called is answered with 403 naming those scopes.
    """

    def __init__(
        self,
        verifier: MockTokenVerifier,
        default_scopes: Sequence[str],
        scopes_by_method: Optional[Dict[str, Sequence[str]]] = None,
        get_resource_metadata_url: Optional[UrlAccessor] = None,
    ):
        self.verifier = verifier
        self.default_scopes = list(default_scopes)
        self.scopes_by_method = {k: list(v) for k, v in (scopes_by_method or {}).items()}
        self.get_resource_metadata_url = get_resource_metadata_url or (lambda: None)

    @staticmethod
    def is_public(rpc_method: Optional[str]) -> bool:
        return rpc_method == "initialize" or bool(rpc_method and rpc_method.startswith("notifications/"))

    def required_for(self, rpc_method: Optional[str]) -> List[str]:
        return self.scopes_by_method.get(rpc_method or "", self.default_scopes)

    async def authorize(self, request: Request, rpc_method: Optional[str]) -> Optional[Response]:
        if self.is_public(rpc_method):
            return None

        token = extract_bearer_token(request)
        if token is None:
            return challenge(
                401, "invalid_token", "Missing Authorization header",
                scope=" ".join(self.default_scopes), resource_metadata=self.get_resource_metadata_url(),
            )
        try:
            info = self.verifier.verify(token)
        except InvalidTokenError as e:
            return challenge(
                401, "invalid_token", str(e),
                scope=" ".join(self.default_scopes), resource_metadata=self.get_resource_metadata_url(),
            )

        required = self.required_for(rpc_method)
        if not has_scopes(info, required):
            logger.debug(f"{rpc_method} needs {required}, token has {info.scopes}")
            return challenge(
                403, "insufficient_scope", "Token has insufficient scope",
                scope=" ".join(required), resource_metadata=self.get_resource_metadata_url(),
            )
        return None


def has_scopes(info: AccessTokenInfo, required: Sequence[str]) -> bool:
    return all(scope in info.scopes for scope in required)
