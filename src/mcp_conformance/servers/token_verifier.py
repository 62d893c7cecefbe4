"""Bearer token verification for the mock resource server."""

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .. import spec_references as refs
from ..ledger import CheckLedger
from ..models import CheckStatus


class InvalidTokenError(Exception):
    """Raised when a presented bearer token is not recognized."""


@dataclass
class AccessTokenInfo:
    token: str
    client_id: str = "test-client"
    scopes: List[str] = field(default_factory=list)
    expires_at: int = 0


class MockTokenVerifier:
    """Accepts tokens issued by the mock authorization server.

    A token is valid if the authorization server registered it, or if it
    carries the ``test-token`` prefix used by the legacy fallback endpoints.
    Every verification is recorded in the ledger.
    """

    VALID_PREFIX = "test-token"

    def __init__(self, ledger: CheckLedger):
        self.ledger = ledger
        self._tokens: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def register_token(self, token: str, scopes: List[str]) -> None:
        with self._lock:
            self._tokens[token] = list(scopes)

    def _lookup(self, token: str) -> Optional[List[str]]:
        with self._lock:
            if token in self._tokens:
                return list(self._tokens[token])
        if token.startswith(self.VALID_PREFIX):
            return []
        return None

    def verify(self, token: Optional[str]) -> AccessTokenInfo:
        """Validate a bearer token and return what it grants.

        Raises:
            InvalidTokenError: If the token is missing or unknown
        """
        scopes = self._lookup(token) if token else None
        if scopes is None:
            self.ledger.record(
                id="invalid-bearer-token",
                name="InvalidBearerToken",
                description="Client provided invalid bearer token",
                status=CheckStatus.FAILURE,
                spec_references=[refs.MCP_ACCESS_TOKEN_USAGE],
                details={
                    "message": "Token verification failed",
                    "token": f"{token[:10]}..." if token else "missing",
                },
            )
            raise InvalidTokenError("Invalid token")

        self.ledger.record(
            id="valid-bearer-token",
            name="ValidBearerToken",
            description="Client provided valid bearer token",
            status=CheckStatus.SUCCESS,
            spec_references=[refs.MCP_ACCESS_TOKEN_USAGE],
            details={"token": f"{token[:15]}...", "scopes": scopes},
        )
        return AccessTokenInfo(token=token, scopes=scopes, expires_at=int(time.time()) + 3600)
