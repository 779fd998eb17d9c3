"""HTTP basic auth for endpoints that change connection configuration."""

from __future__ import annotations

import hmac
import logging
import os
from functools import wraps
from typing import Callable, Tuple

from flask import Response, current_app, jsonify, request

logger = logging.getLogger(__name__)

REALM = "Live Data Connections"

Credentials = Tuple[str, str]


def configured_credentials() -> Credentials | None:
    """Credentials from the app config, falling back to the environment."""
    username = current_app.config.get("CONFIG_AUTH_USERNAME") or os.environ.get(
        "CONFIG_AUTH_USERNAME"
    )
    password = current_app.config.get("CONFIG_AUTH_PASSWORD") or os.environ.get(
        "CONFIG_AUTH_PASSWORD"
    )
    if not username or password is None:
        return None
    return username, password


def _same(expected: str, given: str | None) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), (given or "").encode("utf-8"))


def unauthorized_response() -> Response:
    response = jsonify({"error": "Wymagane uwierzytelnienie"})
    response.status_code = 401
    response.headers["WWW-Authenticate"] = f'Basic realm="{REALM}"'
    return response


def requires_config_auth(view_func: Callable):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        credentials = configured_credentials()
        if credentials is None:
            logger.warning(
                "Odrzucono %s %s - brak skonfigurowanych danych logowania",
                request.method,
                request.path,
            )
            return unauthorized_response()

        auth = request.authorization
        if auth is None:
            return unauthorized_response()
        username, password = credentials
        user_ok = _same(username, auth.username)
        password_ok = _same(password, auth.password)
        if user_ok and password_ok:
            return view_func(*args, **kwargs)

        logger.info("Nieudane logowanie do %s %s", request.method, request.path)
        return unauthorized_response()

    return wrapper


__all__ = [
    "REALM",
    "configured_credentials",
    "requires_config_auth",
    "unauthorized_response",
]
