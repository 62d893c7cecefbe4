"""Disposable mock servers used by client-facing scenarios."""

from .auth_policies import AuthPolicy, BearerAuthPolicy, MethodScopePolicy, NoAuthPolicy, build_www_authenticate
from .auth_server import (
    AuthorizationRequest,
    AuthServerOptions,
    RegistrationResult,
    TokenError,
    TokenGrant,
    TokenRequest,
    create_auth_router,
    create_auth_server,
)
from .lifecycle import ServerLifecycle
from .mcp_endpoint import McpEndpoint, ToolSpec
from .resource_server import ResourceServerOptions, add_trap, create_resource_server
from .token_verifier import MockTokenVerifier

__all__ = [
    "AuthPolicy",
    "AuthServerOptions",
    "AuthorizationRequest",
    "BearerAuthPolicy",
    "McpEndpoint",
    "MethodScopePolicy",
    "MockTokenVerifier",
    "NoAuthPolicy",
    "RegistrationResult",
    "ResourceServerOptions",
    "ServerLifecycle",
    "TokenError",
    "TokenGrant",
    "TokenRequest",
    "ToolSpec",
    "add_trap",
    "build_www_authenticate",
    "create_auth_router",
    "create_auth_server",
    "create_resource_server",
]
