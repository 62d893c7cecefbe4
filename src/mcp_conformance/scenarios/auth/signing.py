"""ES256 key material and JWT helpers for the assertion-based scenarios."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

ES256 = "ES256"
CLOCK_TOLERANCE_SECONDS = 30


@dataclass
class SigningKeyPair:
    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def generate(cls) -> "SigningKeyPair":
        """Fresh P-256 key pair, one per scenario run."""
        private_key = ec.generate_private_key(ec.SECP256R1())
        return cls(private_key=private_key, public_key=private_key.public_key())

    def private_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    def sign(self, claims: Dict[str, Any], headers: Optional[Dict[str, Any]] = None) -> str:
        return jwt.encode(claims, self.private_key, algorithm=ES256, headers=headers)

    def verify(
        self,
        token: str,
        audience: Optional[List[str]] = None,
        issuer: Optional[str] = None,
        leeway: int = 0,
    ) -> Dict[str, Any]:
        """Verify signature and the standard claims.

        Raises:
            jwt.PyJWTError: If the token is malformed, badly signed or its claims don't match
        """
        return jwt.decode(
            token,
            self.public_key,
            algorithms=[ES256],
            audience=audience,
            issuer=issuer,
            leeway=leeway,
        )


def issuer_audiences(issuer: str) -> List[str]:
    """An issuer with and without a trailing slash.

    The two forms are equivalent URLs, and some HTTP libraries normalize one
    into the other, so assertions addressed to either are accepted.
    """
    bare = issuer.rstrip("/")
    return [bare, f"{bare}/"]
