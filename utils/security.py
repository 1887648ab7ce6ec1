"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Signed credentials (access / refresh / password-reset) via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Mapping

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from utils.exceptions import InvalidTokenError, TokenExpiredError

ph = PasswordHasher()

RESERVED_CLAIMS = ("iss", "aud", "iat", "exp", "jti", "type")


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a plaintext password using argon2; accounts without a hash never match
    """
    if not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.utcnow()


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class TokenPolicy:
    secret: str
    lifetime: timedelta


@dataclass(frozen=True)
class CodecConfig:
    """Signing configuration, built once at startup and handed to the codec."""

    policies: Dict[TokenKind, TokenPolicy] = field(default_factory=dict)
    issuer: str = "auth-api"
    audience: str = "auth-client"
    algorithm: str = "HS256"

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "CodecConfig":
        """Read the JWT_* keys of a Flask config (or any mapping)."""
        return cls(
            policies={
                TokenKind.ACCESS: TokenPolicy(config["JWT_ACCESS_SECRET"], config["JWT_ACCESS_EXPIRES"]),
                TokenKind.REFRESH: TokenPolicy(config["JWT_REFRESH_SECRET"], config["JWT_REFRESH_EXPIRES"]),
                TokenKind.PASSWORD_RESET: TokenPolicy(
                    config["JWT_PASSWORD_RESET_SECRET"], config["JWT_PASSWORD_RESET_EXPIRES"]
                ),
            },
            issuer=config.get("JWT_ISSUER", "auth-api"),
            audience=config.get("JWT_AUDIENCE", "auth-client"),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )


class TokenCodec:
    """
    Signs and verifies the three credential kinds.

    Every kind has its own secret and lifetime. All tokens carry the issuer and
    audience tags, a unique jti and a ``type`` claim; verify() checks all of
    them in addition to signature and expiry and fails closed on any mismatch.
    """

    def __init__(self, config: CodecConfig):
        missing = [kind.value for kind in TokenKind if kind not in config.policies]
        if missing:
            raise ValueError(f"No signing policy for token kinds: {', '.join(missing)}")
        self.config = config

    def _policy(self, kind: TokenKind) -> TokenPolicy:
        return self.config.policies[TokenKind(kind)]

    def sign(self, kind: TokenKind, claims: Mapping[str, Any]) -> str:
        if not claims.get("sub"):
            raise ValueError("claims must include a subject ('sub')")
        policy = self._policy(kind)
        now = _now()
        payload = dict(claims)
        payload.update(
            {
                "sub": str(claims["sub"]),
                "iss": self.config.issuer,
                "aud": self.config.audience,
                "iat": now,
                "exp": now + policy.lifetime,
                "jti": generate_jti(),
                "type": TokenKind(kind).value,
            }
        )
        return jwt.encode(payload, policy.secret, algorithm=self.config.algorithm)

    def verify(self, kind: TokenKind, token: str) -> Dict[str, Any]:
        """
        Decode and validate a token of the given kind.
        Raises TokenExpiredError on an elapsed exp, InvalidTokenError otherwise.
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenError("Malformed token.")
        policy = self._policy(kind)
        try:
            decoded = jwt.decode(
                token,
                policy.secret,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={"require": ["exp", "iat", "sub", "jti", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}")

        if decoded.get("type") != TokenKind(kind).value:
            raise InvalidTokenError("Wrong token type")
        return decoded


def public_claims(decoded: Mapping[str, Any]) -> Dict[str, Any]:
    """Strip the registered claims the codec adds, leaving what the caller signed."""
    return {k: v for k, v in decoded.items() if k not in RESERVED_CLAIMS}
