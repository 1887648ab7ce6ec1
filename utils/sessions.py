"""
Session lifecycle: issuing, rotating and revoking access/refresh pairs.

- SessionIssuer signs a fresh pair and registers the refresh token
- RotationEngine exchanges a registered refresh token for a new pair, once
- revoke_session / revoke_all_sessions back logout and logout-everywhere
- init_auth wires the codec, registry and engines onto the Flask app
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from flask import current_app

import models
from models.base_model import utcnow
from models.user import User
from utils.exceptions import (
    AccountDeactivatedError,
    AuthError,
    NoTokenError,
    TokenRevokedError,
    UserNotFoundError,
)
from utils.security import CodecConfig, TokenCodec, TokenKind
from utils.token_registry import TokenRegistry

logger = logging.getLogger(__name__)

EXTENSION_KEY = "clinic_auth"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class SessionIssuer:
    def __init__(self, codec: TokenCodec, registry: TokenRegistry):
        self.codec = codec
        self.registry = registry

    def issue_session(self, user: User, record_login: bool = False, replaces: Optional[str] = None) -> TokenPair:
        """
        Sign a new pair for ``user`` and register its refresh token.

        With ``replaces`` the old refresh token is swapped out in the same
        transaction (rotation). With ``record_login`` last_login is stamped in
        that same commit. The pair is only returned once the refresh token is
        durably registered.
        """
        pair = TokenPair(
            access_token=self.codec.sign(TokenKind.ACCESS, {"sub": user.id, "email": user.email}),
            refresh_token=self.codec.sign(TokenKind.REFRESH, {"sub": user.id}),
        )
        if record_login:
            user.last_login = utcnow()
        if replaces is None:
            self.registry.add_token(user, pair.refresh_token)
        else:
            self.registry.replace_token(user, replaces, pair.refresh_token)
        logger.info("Issued session for user %s%s", user.id, " (rotation)" if replaces else "")
        return pair


class RotationEngine:
    def __init__(self, codec: TokenCodec, registry: TokenRegistry, issuer: SessionIssuer):
        self.codec = codec
        self.registry = registry
        self.issuer = issuer

    def rotate(self, token: Optional[str]) -> Tuple[User, TokenPair]:
        """
        Exchange a refresh token for a new pair.

        Every failure past extraction asks for the credential cookies to be
        cleared. A token that verifies but is no longer registered (rotated
        already, logged out, evicted) is rejected as revoked.
        """
        if not token:
            raise NoTokenError("Refresh token not found.")

        try:
            claims = self.codec.verify(TokenKind.REFRESH, token)
        except AuthError as exc:
            logger.info("Refresh rejected: %s", exc.code)
            raise exc.with_cleared_cookies()

        user = User.find_by_id(claims["sub"])
        if user is None:
            raise UserNotFoundError(clear_cookies=True)

        if not self.registry.has_token(user, token):
            logger.warning("Refresh token reuse or revoked token presented for user %s", user.id)
            raise TokenRevokedError(clear_cookies=True)

        if not user.is_active:
            raise AccountDeactivatedError(clear_cookies=True)

        try:
            pair = self.issuer.issue_session(user, replaces=token)
        except TokenRevokedError as exc:
            # Lost a race with a concurrent rotation or logout
            logger.warning("Concurrent refresh lost the swap for user %s", user.id)
            raise exc.with_cleared_cookies()
        return user, pair


def revoke_session(registry: TokenRegistry, user: User, token: Optional[str]) -> int:
    """Logout: drop exactly the presented refresh token, if any."""
    if not token:
        return 0
    removed = registry.remove_token(user, token)
    logger.info("Revoked %d session(s) for user %s", removed, user.id)
    return removed


def revoke_all_sessions(registry: TokenRegistry, user: User) -> int:
    """Logout everywhere; also used for forced invalidation."""
    removed = registry.clear_all(user)
    logger.info("Revoked all %d session(s) for user %s", removed, user.id)
    return removed


def _log_reset_token(user: User, token: str) -> None:
    # Delivery is external; never log the token itself
    logger.info("Password reset token issued for user %s", user.id)


@dataclass
class AuthServices:
    codec: TokenCodec
    registry: TokenRegistry
    issuer: SessionIssuer
    rotation: RotationEngine
    reset_notifier: Callable[[User, str], None] = _log_reset_token

    def revoke(self, user: User, token: Optional[str]) -> int:
        return revoke_session(self.registry, user, token)

    def revoke_all(self, user: User) -> int:
        return revoke_all_sessions(self.registry, user)

    def issue_password_reset(self, user: User) -> str:
        token = self.codec.sign(TokenKind.PASSWORD_RESET, {"sub": user.id})
        self.reset_notifier(user, token)
        return token


def build_auth_services(config, storage=None, reset_notifier=None) -> AuthServices:
    codec = TokenCodec(CodecConfig.from_mapping(config))
    registry = TokenRegistry(
        storage or models.storage,
        capacity=config.get("REFRESH_TOKEN_LIMIT", 5),
        retention=config["REFRESH_TOKEN_RETENTION"],
    )
    issuer = SessionIssuer(codec, registry)
    services = AuthServices(codec=codec, registry=registry, issuer=issuer,
                            rotation=RotationEngine(codec, registry, issuer))
    if reset_notifier is not None:
        services.reset_notifier = reset_notifier
    return services


def init_auth(app, reset_notifier=None) -> AuthServices:
    services = build_auth_services(app.config, reset_notifier=reset_notifier)
    app.extensions[EXTENSION_KEY] = services
    return services


def current_auth() -> AuthServices:
    return current_app.extensions[EXTENSION_KEY]
