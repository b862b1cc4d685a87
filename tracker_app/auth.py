"""
Session handling for the task tracker.

A session is a signed JWT that is also recorded in the owning user's
token list.  The signature says who issued the token; the token list says
whether the session is still open.  Removing a token from the list
(logout) therefore revokes it immediately even though the JWT itself
never expires.

Provides:
    - ``issue_token`` / ``revoke_token`` / ``revoke_all_tokens``
    - ``authenticate`` -- resolve a raw bearer token to a ``User``
    - ``require_auth`` -- decorator that authenticates the current request
      and stores the user and token on ``flask.g``
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps

import jwt as pyjwt
from flask import current_app, g, request

from . import db
from .errors import Unauthorized
from .jwt import create_token, decode_token
from .models import User, UserToken

logger = logging.getLogger(__name__)


def issue_token(user: User) -> str:
    """
    Sign a new token for *user*, append it to the token list and commit.

    Returns:
        The token string to hand back to the client.
    """
    token = create_token(user.id, current_app.config["JWT_PRIVATE_KEY"])
    user.tokens.append(UserToken(token=token))
    db.session.commit()
    logger.info("Issued session token for user_id=%s (%s active)", user.id, len(user.tokens))
    return token


def revoke_token(user: User, token: str) -> None:
    """Remove exactly *token* from the user's token list."""
    user.tokens = [entry for entry in user.tokens if entry.token != token]
    db.session.commit()
    logger.info("Revoked one session for user_id=%s", user.id)


def revoke_all_tokens(user: User) -> None:
    """Remove every session token belonging to *user*."""
    user.tokens.clear()
    db.session.commit()
    logger.info("Revoked all sessions for user_id=%s", user.id)


def _extract_bearer_token() -> str | None:
    """
    Extract the Bearer token from the current request's Authorization header.

    Returns:
        The raw token string, or ``None`` if the header is absent,
        malformed, or empty after stripping whitespace.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def authenticate(token: str) -> User:
    """
    Resolve a bearer token to the user it belongs to.

    Raises:
        Unauthorized: If the signature is invalid, the user no longer
            exists, or the token is not in the user's token list.
    """
    try:
        payload = decode_token(
            token,
            current_app.config["JWT_PUBLIC_KEY"],
            leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
        )
    except pyjwt.InvalidTokenError as exc:
        logger.warning("Rejected bearer token: %s", exc)
        raise Unauthorized() from exc

    user = db.session.get(User, payload["user_id"])
    if user is None or not user.has_token(token):
        logger.warning("Rejected revoked or orphaned token for user_id=%s", payload["user_id"])
        raise Unauthorized()
    return user


def require_auth(view_func: Callable):
    """
    Decorator that enforces Bearer-token authentication on an endpoint.

    On success ``g.user`` holds the authenticated ``User`` and ``g.token``
    the token that was presented, so logout can revoke exactly that one.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        token = _extract_bearer_token()
        if token is None:
            raise Unauthorized()

        g.user = authenticate(token)
        g.token = token
        return view_func(*args, **kwargs)

    return wrapper
