"""Credential carriers: the accessToken / refreshToken cookies."""
from __future__ import annotations

from flask import current_app, request


def access_cookie_name() -> str:
    return current_app.config.get("ACCESS_COOKIE_NAME", "accessToken")


def refresh_cookie_name() -> str:
    return current_app.config.get("REFRESH_COOKIE_NAME", "refreshToken")


def read_access_cookie():
    return request.cookies.get(access_cookie_name())


def read_refresh_cookie():
    return request.cookies.get(refresh_cookie_name())


def _cookie_options(max_age) -> dict:
    cfg = current_app.config
    return {
        "max_age": int(max_age.total_seconds()),
        "httponly": True,
        "secure": cfg.get("COOKIE_SECURE", False),
        "samesite": cfg.get("COOKIE_SAMESITE", "Lax"),
        "domain": cfg.get("COOKIE_DOMAIN"),
        "path": "/",
    }


def set_auth_cookies(response, pair):
    cfg = current_app.config
    response.set_cookie(access_cookie_name(), pair.access_token, **_cookie_options(cfg["ACCESS_COOKIE_MAX_AGE"]))
    response.set_cookie(refresh_cookie_name(), pair.refresh_token, **_cookie_options(cfg["REFRESH_COOKIE_MAX_AGE"]))
    return response


def clear_auth_cookies(response):
    domain = current_app.config.get("COOKIE_DOMAIN")
    response.delete_cookie(access_cookie_name(), path="/", domain=domain)
    response.delete_cookie(refresh_cookie_name(), path="/", domain=domain)
    return response
