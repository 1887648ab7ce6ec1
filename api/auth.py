"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all
- GET  /auth/me
- PUT  /auth/profile
- POST /auth/forgot-password
- PUT  /auth/change-password

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256)
- Carries both in HTTP-only cookies
- Keeps refresh tokens in a per-user registry so they can be rotated once and revoked
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort

from models.user import AuthProvider, Role, User
from models.schemas.user import (
    ChangePasswordSchema,
    ForgotPasswordSchema,
    ProfileUpdateSchema,
    UserCreateSchema,
    UserLoginSchema,
    UserOutSchema,
)
from utils.cookies import clear_auth_cookies, read_refresh_cookie, set_auth_cookies
from utils.decorators import jwt_required, reset_token_required
from utils.exceptions import AccountDeactivatedError, InvalidCredentialsError
from utils.security import hash_password, verify_password
from utils.sessions import current_auth

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_login_schema = UserLoginSchema()
user_out_schema = UserOutSchema()
profile_update_schema = ProfileUpdateSchema()
forgot_password_schema = ForgotPasswordSchema()
change_password_schema = ChangePasswordSchema()


@bp.post("/register")
def register():
    """
    Register a new doctor or patient and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
            role: { type: string, enum: [doctor, patient] }
    responses:
      201:
        description: Created (sets accessToken and refreshToken cookies)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    if User.find_by_email(data["email"]):
        abort(409, description="User with this email already exists")

    user = User.create(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        role=Role(data["role"]),
        auth_provider=AuthProvider.LOCAL,
    )
    pair = current_auth().issuer.issue_session(user, record_login=True)
    logger.info("Registered user %s as %s", user.id, user.role.value)

    response = jsonify(
        {
            "message": "User registered successfully",
            "data": {"user": user_out_schema.dump(user)},
        }
    )
    set_auth_cookies(response, pair)
    return response, 201


@bp.post("/login")
def login():
    """
    Login: sets accessToken and refreshToken cookies
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (sets cookies)
      401:
        description: INVALID_CREDENTIALS or ACCOUNT_DEACTIVATED
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)

    user = User.find_by_email(data["email"], with_password=True)
    if not user:
        raise InvalidCredentialsError()
    if not user.is_active:
        raise AccountDeactivatedError("Account is deactivated.")
    if not verify_password(data["password"], user.password_hash):
        raise InvalidCredentialsError()

    pair = current_auth().issuer.issue_session(user, record_login=True)

    response = jsonify(
        {
            "message": "Login successful",
            "data": {"user": user_out_schema.dump(user)},
        }
    )
    set_auth_cookies(response, pair)
    return response, 200


@bp.post("/refresh")
def refresh():
    """
    Exchange the refreshToken cookie for a new pair (rotation).
    A refresh token can be exchanged once; presenting it again fails with TOKEN_REVOKED.
    ---
    tags:
      - Auth
    responses:
      200:
        description: Token refreshed (sets new cookies)
      401:
        description: NO_TOKEN, TOKEN_EXPIRED, INVALID_TOKEN, USER_NOT_FOUND, TOKEN_REVOKED or ACCOUNT_DEACTIVATED
    """
    _, pair = current_auth().rotation.rotate(read_refresh_cookie())
    response = jsonify({"message": "Token refreshed successfully"})
    set_auth_cookies(response, pair)
    return response, 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes the refresh token presented in the cookie
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: Logged out (cookies cleared)
      401:
        description: Unauthorized
    """
    current_auth().revoke(g.current_user, read_refresh_cookie())
    response = jsonify({"message": "Logout successful"})
    clear_auth_cookies(response)
    return response, 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Logout from all devices: clears every registered refresh token
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: Logged out everywhere (cookies cleared)
      401:
        description: Unauthorized
    """
    current_auth().revoke_all(g.current_user)
    response = jsonify({"message": "Logged out from all devices"})
    clear_auth_cookies(response)
    return response, 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": {"user": user_out_schema.dump(g.current_user)}}), 200


@bp.put("/profile")
@jwt_required()
def update_profile():
    """
    Update name, profile picture, and (doctors only) specialization.
    ---
    tags:
      - Auth
    security:
      - CookieAuth: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            profile_picture: { type: string }
            specialization: { type: string }
    responses:
      200: { description: OK }
      422: { description: Validation error }
    """
    data = profile_update_schema.load(request.get_json(silent=True) or {})
    user = g.current_user
    if "specialization" in data and user.role != Role.DOCTOR:
        abort(422, description="Only doctors have a specialization")
    for key, value in data.items():
        setattr(user, key, value)
    user.save()
    return jsonify({"data": {"user": user_out_schema.dump(user)}}), 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Issue a password-reset token for an active local account.
    Always answers 200 so account existence is not disclosed.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200: { description: Accepted }
    """
    data = forgot_password_schema.load(request.get_json(silent=True) or {})
    user = User.find_by_email(data["email"])
    if user and user.is_active and user.auth_provider == AuthProvider.LOCAL:
        current_auth().issue_password_reset(user)
    return jsonify({"message": "If the account exists, password reset instructions have been sent"}), 200


@bp.put("/change-password")
@reset_token_required()
def change_password():
    """
    Set a new password using a password-reset token; revokes every session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            token: { type: string }
            password: { type: string }
    responses:
      200: { description: Password changed (cookies cleared) }
      401: { description: NO_TOKEN, TOKEN_EXPIRED, INVALID_TOKEN, USER_NOT_FOUND or ACCOUNT_DEACTIVATED }
      422: { description: Validation error }
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    user = g.current_user
    user.password_hash = hash_password(data["password"])
    user.save()
    current_auth().revoke_all(user)

    response = jsonify({"message": "Password changed successfully. Please log in again."})
    clear_auth_cookies(response)
    return response, 200
