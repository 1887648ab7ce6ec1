"""Tests for the request authentication gate and its variants."""

from dataclasses import replace
from datetime import timedelta

import pytest
from flask import g, jsonify
from sqlalchemy.exc import OperationalError

from models.user import Role, User
from utils.decorators import has_role, jwt_required, optional_auth, roles_required
from utils.security import TokenCodec, TokenKind, TokenPolicy
from utils.sessions import current_auth
from tests.helpers import API, cookie, login


@pytest.fixture
def gated_app(app):
    @app.get("/_test/protected")
    @jwt_required()
    def protected():
        return jsonify({"user_id": g.current_user_id})

    @app.get("/_test/optional")
    @optional_auth()
    def optional():
        return jsonify({"user_id": g.current_user_id})

    @app.get("/_test/doctors-only")
    @roles_required(["doctor", "admin"])
    def doctors_only():
        return jsonify({"role": g.current_user.role.value})

    return app


@pytest.fixture
def gated_client(gated_app):
    return gated_app.test_client()


def _sign(app, kind, claims, lifetime=None):
    with app.app_context():
        codec = current_auth().codec
        if lifetime is not None:
            policies = dict(codec.config.policies)
            policies[kind] = TokenPolicy(policies[kind].secret, lifetime)
            codec = TokenCodec(replace(codec.config, policies=policies))
        return codec.sign(kind, claims)


class TestJwtRequired:
    def test_valid_cookie_attaches_identity(self, gated_client, make_user):
        user_id = make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")

        resp = gated_client.get("/_test/protected")

        assert resp.status_code == 200
        assert resp.get_json()["user_id"] == user_id

    def test_missing_cookie(self, gated_client):
        resp = gated_client.get("/_test/protected")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "NO_TOKEN"

    def test_expired_cookie(self, gated_app, gated_client, make_user):
        user_id = make_user()
        token = _sign(gated_app, TokenKind.ACCESS, {"sub": user_id, "email": "x"}, timedelta(seconds=-1))
        gated_client.set_cookie("accessToken", token)

        assert gated_client.get("/_test/protected").get_json()["error"] == "TOKEN_EXPIRED"

    def test_tampered_cookie(self, gated_client, make_user):
        make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")
        head, body, sig = cookie(gated_client, "accessToken").split(".")
        tampered = ".".join([head, body, ("A" if sig[0] != "A" else "B") + sig[1:]])
        gated_client.set_cookie("accessToken", tampered)

        assert gated_client.get("/_test/protected").get_json()["error"] == "INVALID_TOKEN"

    def test_refresh_token_is_not_an_access_token(self, gated_client, make_user):
        make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")
        gated_client.set_cookie("accessToken", cookie(gated_client, "refreshToken"))

        assert gated_client.get("/_test/protected").get_json()["error"] == "INVALID_TOKEN"

    def test_deleted_user(self, gated_app, gated_client):
        token = _sign(gated_app, TokenKind.ACCESS, {"sub": "deleted-user", "email": "x"})
        gated_client.set_cookie("accessToken", token)

        assert gated_client.get("/_test/protected").get_json()["error"] == "USER_NOT_FOUND"

    def test_deactivated_user_with_current_token(self, gated_client, make_user):
        user_id = make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")
        user = User.find_by_id(user_id)
        user.is_active = False
        user.save()

        resp = gated_client.get("/_test/protected")

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "ACCOUNT_DEACTIVATED"

    def test_rejections_do_not_clear_cookies(self, gated_client, make_user):
        user_id = make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")
        user = User.find_by_id(user_id)
        user.is_active = False
        user.save()

        gated_client.get("/_test/protected")
        assert cookie(gated_client, "refreshToken") is not None


class TestOptionalAuth:
    def test_anonymous_without_cookie(self, gated_client):
        resp = gated_client.get("/_test/optional")
        assert resp.status_code == 200
        assert resp.get_json()["user_id"] is None

    def test_anonymous_with_bad_cookie(self, gated_client):
        gated_client.set_cookie("accessToken", "garbage")
        resp = gated_client.get("/_test/optional")
        assert resp.status_code == 200
        assert resp.get_json()["user_id"] is None

    def test_anonymous_when_deactivated(self, gated_client, make_user):
        user_id = make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")
        user = User.find_by_id(user_id)
        user.is_active = False
        user.save()

        assert gated_client.get("/_test/optional").get_json()["user_id"] is None

    def test_identified_with_valid_cookie(self, gated_client, make_user):
        user_id = make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")
        assert gated_client.get("/_test/optional").get_json()["user_id"] == user_id


class TestRoles:
    def test_allowed_role(self, gated_client, make_user):
        make_user(email="doc@example.com", role=Role.DOCTOR)
        login(gated_client, "doc@example.com")

        resp = gated_client.get("/_test/doctors-only")
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "doctor"

    def test_disallowed_role(self, gated_client, make_user):
        make_user(email="pat@example.com", role=Role.PATIENT)
        login(gated_client, "pat@example.com")

        resp = gated_client.get("/_test/doctors-only")
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "FORBIDDEN"

    def test_authentication_checked_before_role(self, gated_client):
        assert gated_client.get("/_test/doctors-only").get_json()["error"] == "NO_TOKEN"

    def test_has_role_predicate(self):
        doctor = User(role=Role.DOCTOR)
        assert has_role(doctor, ["doctor"])
        assert has_role(doctor, [Role.ADMIN, Role.DOCTOR])
        assert not has_role(doctor, ["patient"])
        assert not has_role(None, ["doctor"])


class TestErrorEnvelope:
    def test_storage_failure_is_not_an_auth_failure(self, gated_client, make_user, monkeypatch):
        make_user(email="ok@example.com")
        login(gated_client, "ok@example.com")

        def broken(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is down"))

        monkeypatch.setattr(User, "find_by_id", classmethod(broken))

        resp = gated_client.get("/_test/protected")
        assert resp.status_code == 503
        assert resp.get_json()["error"] == "SERVICE_UNAVAILABLE"

    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"
