"""JWT access token validation (ES256).

Tokens are minted by the identity provider; this service only verifies
them against the provider's public key (JWT_PUBLIC_KEY or
JWT_PUBLIC_KEY_FILE).  Without a configured key, dev and test runs get
an ephemeral key pair generated at import time, and
``create_access_token`` signs with it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from tenantgate.core.config import SETTINGS, Settings

ALGORITHM = "ES256"
ISSUER = SETTINGS.jwt_issuer
AUDIENCE = SETTINGS.jwt_audience
ACCESS_TOKEN_TTL_MIN = 15


@dataclass(frozen=True, slots=True)
class TokenVerifier:
    public_key: ec.EllipticCurvePublicKey
    issuer: str
    audience: str

    def decode(self, token: str) -> dict:
        """Verify signature and claims, return the payload.

        Algorithm is pinned to ES256.  Raises jwt.ExpiredSignatureError or
        jwt.InvalidTokenError.
        """
        return jwt.decode(
            token,
            self.public_key,
            algorithms=[ALGORITHM],
            issuer=self.issuer,
            audience=self.audience,
            options={"require": ["sub", "exp", "iat", "jti"]},
        )


def load_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    key = serialization.load_pem_public_key(pem.encode())
    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise ValueError("JWT public key must be an EC (P-256) key for ES256")
    return key


def build_verifier(
    settings: Settings, dev_key: ec.EllipticCurvePrivateKey | None = None
) -> TokenVerifier:
    if settings.jwt_public_key:
        public_key = load_public_key(settings.jwt_public_key)
    elif dev_key is not None and not settings.is_prod:
        public_key = dev_key.public_key()
    else:
        raise ValueError("no JWT public key configured")
    return TokenVerifier(public_key, settings.jwt_issuer, settings.jwt_audience)


# Dev/test only: signs tokens the local verifier accepts.
_signing_key = (
    ec.generate_private_key(ec.SECP256R1())
    if SETTINGS.jwt_public_key is None and not SETTINGS.is_prod
    else None
)
_verifier = build_verifier(SETTINGS, _signing_key)


def create_access_token(
    *,
    sub: str,
    email: str,
    sid: str | None = None,
    ttl: timedelta | None = None,
) -> str:
    """Sign an access token carrying sub, email and the browser-session id."""
    if _signing_key is None:
        raise RuntimeError("local token signing is disabled when a provider key is configured")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "email": email,
        "sid": sid or str(uuid.uuid4()),
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + (ttl if ttl is not None else timedelta(minutes=ACCESS_TOKEN_TTL_MIN)),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _signing_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return _verifier.decode(token)
