"""Unit tests for session issuance, rotation and revocation."""

from dataclasses import replace
from datetime import timedelta

import pytest

from models import storage
from models.user import User
from utils.exceptions import (
    AccountDeactivatedError,
    InvalidTokenError,
    NoTokenError,
    TokenExpiredError,
    TokenRevokedError,
    UserNotFoundError,
)
from utils.security import TokenCodec, TokenKind, TokenPolicy
from utils.sessions import revoke_all_sessions, revoke_session


@pytest.fixture
def user(make_user):
    return User.find_by_id(make_user(email="pat@example.com"))


class TestSessionIssuer:
    def test_access_token_names_the_user(self, services, user):
        pair = services.issuer.issue_session(user)

        claims = services.codec.verify(TokenKind.ACCESS, pair.access_token)
        assert claims["sub"] == user.id
        assert claims["email"] == "pat@example.com"

    def test_refresh_token_carries_only_subject(self, services, user):
        pair = services.issuer.issue_session(user)

        claims = services.codec.verify(TokenKind.REFRESH, pair.refresh_token)
        assert claims["sub"] == user.id
        assert "email" not in claims

    def test_refresh_token_is_registered(self, services, user):
        pair = services.issuer.issue_session(user)
        assert services.registry.has_token(user, pair.refresh_token)

    def test_record_login_stamps_last_login(self, services, user):
        assert user.last_login is None
        services.issuer.issue_session(user, record_login=True)
        storage.close()

        assert User.find_by_id(user.id).last_login is not None

    def test_two_logins_both_usable(self, services, user):
        first = services.issuer.issue_session(user, record_login=True)
        second = services.issuer.issue_session(user, record_login=True)

        assert services.registry.tokens(user) == [first.refresh_token, second.refresh_token]
        services.rotation.rotate(first.refresh_token)
        services.rotation.rotate(second.refresh_token)

    def test_logins_beyond_cap_evict_oldest_session(self, services, user):
        pairs = [services.issuer.issue_session(user) for _ in range(6)]

        tokens = services.registry.tokens(user)
        assert len(tokens) == 5
        assert tokens == [p.refresh_token for p in pairs[1:]]


class TestRotationEngine:
    def test_rotation_issues_new_pair_and_retires_old(self, services, user):
        pair_a = services.issuer.issue_session(user)

        rotated_user, pair_b = services.rotation.rotate(pair_a.refresh_token)

        assert rotated_user.id == user.id
        assert pair_b.refresh_token != pair_a.refresh_token
        assert services.registry.tokens(user) == [pair_b.refresh_token]

    def test_reusing_rotated_token_is_revoked(self, services, user):
        pair_a = services.issuer.issue_session(user)
        services.rotation.rotate(pair_a.refresh_token)

        # Signature and expiry are still fine...
        services.codec.verify(TokenKind.REFRESH, pair_a.refresh_token)
        # ...but the registry no longer honours it
        with pytest.raises(TokenRevokedError) as exc:
            services.rotation.rotate(pair_a.refresh_token)
        assert exc.value.clear_cookies

    def test_missing_token(self, services):
        with pytest.raises(NoTokenError) as exc:
            services.rotation.rotate(None)
        assert not exc.value.clear_cookies

    def test_invalid_token_clears_cookies(self, services):
        with pytest.raises(InvalidTokenError) as exc:
            services.rotation.rotate("garbage")
        assert exc.value.clear_cookies

    def test_access_token_cannot_be_used_to_refresh(self, services, user):
        pair = services.issuer.issue_session(user)
        with pytest.raises(InvalidTokenError):
            services.rotation.rotate(pair.access_token)

    def test_expired_token_clears_cookies(self, services, user):
        policies = dict(services.codec.config.policies)
        policies[TokenKind.REFRESH] = TokenPolicy(policies[TokenKind.REFRESH].secret, timedelta(seconds=-1))
        stale = TokenCodec(replace(services.codec.config, policies=policies)).sign(TokenKind.REFRESH, {"sub": user.id})

        with pytest.raises(TokenExpiredError) as exc:
            services.rotation.rotate(stale)
        assert exc.value.clear_cookies

    def test_unknown_subject(self, services):
        token = services.codec.sign(TokenKind.REFRESH, {"sub": "no-such-user"})
        with pytest.raises(UserNotFoundError) as exc:
            services.rotation.rotate(token)
        assert exc.value.clear_cookies

    def test_unregistered_token_is_revoked(self, services, user):
        token = services.codec.sign(TokenKind.REFRESH, {"sub": user.id})
        with pytest.raises(TokenRevokedError):
            services.rotation.rotate(token)

    def test_deactivated_account(self, services, user):
        pair = services.issuer.issue_session(user)
        user.is_active = False
        user.save()

        with pytest.raises(AccountDeactivatedError) as exc:
            services.rotation.rotate(pair.refresh_token)
        assert exc.value.clear_cookies
        # The token stays registered; rejection does not consume it
        assert services.registry.has_token(user, pair.refresh_token)

    def test_lost_swap_surfaces_as_revoked(self, services, user, monkeypatch):
        pair = services.issuer.issue_session(user)
        real_has_token = services.registry.has_token

        def has_token_then_concurrent_logout(u, token):
            present = real_has_token(u, token)
            services.registry.remove_token(u, token)
            return present

        monkeypatch.setattr(services.registry, "has_token", has_token_then_concurrent_logout)

        with pytest.raises(TokenRevokedError) as exc:
            services.rotation.rotate(pair.refresh_token)
        assert exc.value.clear_cookies
        assert services.registry.tokens(user) == []


class TestRevocation:
    def test_logout_keeps_other_devices(self, services, user):
        phone = services.issuer.issue_session(user)
        laptop = services.issuer.issue_session(user)

        assert revoke_session(services.registry, user, phone.refresh_token) == 1

        with pytest.raises(TokenRevokedError):
            services.rotation.rotate(phone.refresh_token)
        services.rotation.rotate(laptop.refresh_token)

    def test_logout_without_token_is_noop(self, services, user):
        services.issuer.issue_session(user)
        assert revoke_session(services.registry, user, None) == 0
        assert len(services.registry.tokens(user)) == 1

    def test_logout_all_revokes_everything(self, services, user):
        pairs = [services.issuer.issue_session(user) for _ in range(3)]

        assert revoke_all_sessions(services.registry, user) == 3

        for pair in pairs:
            with pytest.raises(TokenRevokedError):
                services.rotation.rotate(pair.refresh_token)
