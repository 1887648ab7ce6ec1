from __future__ import annotations
import logging
from functools import wraps
from flask import request, g

from models.user import Role, User
from utils.cookies import read_access_cookie
from utils.exceptions import (
    AccountDeactivatedError,
    AuthError,
    ForbiddenError,
    NoTokenError,
    UserNotFoundError,
)
from utils.security import TokenKind
from utils.sessions import current_auth

logger = logging.getLogger(__name__)


def authenticate_token(token: str | None, kind: TokenKind = TokenKind.ACCESS) -> User:
    """
    Verify ``token`` as ``kind`` and return the active user it names.
    Raises NoTokenError, TokenExpiredError, InvalidTokenError,
    UserNotFoundError or AccountDeactivatedError.
    """
    if not token:
        raise NoTokenError()
    decoded = current_auth().codec.verify(kind, token)
    user = User.find_by_id(decoded.get("sub"))
    if user is None:
        raise UserNotFoundError()
    if not user.is_active:
        raise AccountDeactivatedError()
    return user


def _attach(user: User | None):
    g.current_user = user
    g.current_user_id = user.id if user is not None else None


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                user = authenticate_token(read_access_cookie())
            except AuthError as exc:
                logger.info("Rejected %s %s: %s", request.method, request.path, exc.code)
                raise
            _attach(user)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def optional_auth():
    """Attach the user when the access cookie checks out; continue anonymously otherwise."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                user = authenticate_token(read_access_cookie())
            except AuthError:
                user = None
            _attach(user)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def reset_token_required():
    """Authorize with a password-reset token taken from the JSON body ("token")."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            payload = request.get_json(silent=True) or {}
            token = payload.get("token") if isinstance(payload, dict) else None
            user = authenticate_token(token if isinstance(token, str) else None, TokenKind.PASSWORD_RESET)
            _attach(user)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def has_role(user, allowed_roles) -> bool:
    """Allow-list check over the user's single role."""
    if user is None:
        return False
    allowed = {Role(r) for r in allowed_roles}
    return Role(user.role) in allowed


def roles_required(required_roles: list[str]):
    """
    Allow access if the authenticated user's role is one of ``required_roles``.
    Deny (403) otherwise.
    """
    allowed = [Role(r).value for r in required_roles or []]

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not has_role(g.current_user, allowed):
                raise ForbiddenError(
                    f"Access denied. Requires one of the following roles: {', '.join(allowed)}"
                )
            return fn(*args, **kwargs)

        return wrapper

    return decorator
