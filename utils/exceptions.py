"""
Authentication and authorization errors.

Each error carries a machine-readable reason tag (``code``) separate from its
human message, plus the HTTP status it maps to. ``clear_cookies`` asks the
error handler to delete both credential cookies on the response so the client
re-authenticates instead of resubmitting a doomed token.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "AUTH_ERROR"
    status = 401
    message = "Authentication failed."

    def __init__(self, message: str | None = None, clear_cookies: bool = False):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.clear_cookies = clear_cookies

    def with_cleared_cookies(self) -> "AuthError":
        self.clear_cookies = True
        return self


class NoTokenError(AuthError):
    code = "NO_TOKEN"
    message = "Access denied. No token provided."


class TokenExpiredError(AuthError):
    code = "TOKEN_EXPIRED"
    message = "Token expired."


class InvalidTokenError(AuthError):
    code = "INVALID_TOKEN"
    message = "Invalid token."


class UserNotFoundError(AuthError):
    code = "USER_NOT_FOUND"
    message = "User not found."


class AccountDeactivatedError(AuthError):
    code = "ACCOUNT_DEACTIVATED"
    message = "User account is deactivated."


class TokenRevokedError(AuthError):
    code = "TOKEN_REVOKED"
    message = "Refresh token revoked."


class InvalidCredentialsError(AuthError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials."


class ForbiddenError(AuthError):
    code = "FORBIDDEN"
    status = 403
    message = "Insufficient role."
