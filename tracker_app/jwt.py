"""
JWT creation and verification for session tokens.

Session tokens are RS256-signed JSON Web Tokens.  Signing proves that a
token was issued by this API; whether the session is still *active* is
decided separately by the user's stored token list (see ``auth.py``), so
the tokens carry no ``exp`` claim and stay valid until logout.

Token structure (claims):
    - ``user_id`` -- integer primary key of the authenticated user.
    - ``jti``     -- random token id; two logins in the same second still
      produce different tokens.
    - ``iat``     -- issued-at timestamp (UTC epoch seconds).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import jwt

ALGORITHM = "RS256"
REQUIRED_TOKEN_CLAIMS = ["user_id", "jti", "iat"]


def create_token(user_id: int, private_key: str) -> str:
    """
    Create an RS256-signed JWT identifying *user_id*.

    Args:
        user_id: Primary key of the authenticated user.  Must be a
            positive integer.
        private_key: The RSA private key in PEM format used to sign the
            token.

    Returns:
        A compact JWS string suitable for use as a Bearer token.

    Raises:
        ValueError: If *user_id* is not positive.
    """
    if int(user_id) <= 0:
        raise ValueError("user_id must be a positive integer")

    payload: dict[str, Any] = {
        "user_id": int(user_id),
        "jti": uuid.uuid4().hex,
        "iat": int(datetime.now(timezone.utc).timestamp()),
    }
    return jwt.encode(payload, private_key, algorithm=ALGORITHM)


def decode_token(token: str, public_key: str, leeway: int = 30) -> dict[str, Any]:
    """
    Verify the signature of *token* and return its claims.

    Args:
        token: The raw compact-JWS token string.
        public_key: The RSA public key in PEM format.
        leeway: Seconds of clock skew tolerated on ``iat``.

    Returns:
        The decoded payload with a validated ``user_id`` claim.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, has an invalid
            signature, lacks a required claim or carries a bad ``user_id``.
    """
    payload = jwt.decode(
        token,
        public_key,
        algorithms=[ALGORITHM],
        options={"require": REQUIRED_TOKEN_CLAIMS},
        leeway=leeway,
    )
    user_id = payload.get("user_id")
    # bool is an int subclass; reject it explicitly
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise jwt.InvalidTokenError("Invalid user_id claim")
    return payload
