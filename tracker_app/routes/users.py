"""
User account endpoints.

Endpoints:
    POST   /users                 - Sign up and receive a session token
    POST   /users/login           - Log in and receive an additional token
    POST   /users/logout          - Revoke the presented token
    POST   /users/logoutAll       - Revoke every token of the user
    GET    /users/me              - Read the authenticated profile
    PATCH  /users/me              - Update name, email and/or password
    DELETE /users/me              - Delete the account and all its tasks
    POST   /users/me/avatar       - Upload a jpg/png avatar (multipart)
    DELETE /users/me/avatar       - Remove the avatar
    GET    /users/<id>/avatar     - Serve a user's avatar (public)
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .. import db
from ..auth import issue_token, require_auth, revoke_all_tokens, revoke_token
from ..errors import AuthError, NotFound, ValidationError
from ..models import MAX_ROW_ID, User
from ..validation import (
    USER_UPDATE_FIELDS,
    clean_email,
    get_json_object,
    read_avatar,
    reject_unknown_fields,
    validate_user_fields,
)

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__)


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _email_taken(email: str, exclude_user_id: int | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.session.scalar(stmt) is not None


def _commit_user_changes() -> None:
    """
    Commit pending user changes.

    The unique index on ``users.email`` is the final word on duplicates;
    a race that slips past ``_email_taken`` surfaces here as a 400.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Rejected duplicate email on commit")
        raise ValidationError("Email is already registered") from exc


# -----------------------------------------------------------------------------
# Session Endpoints
# -----------------------------------------------------------------------------

@users_bp.route("", methods=["POST"])
def signup() -> tuple[Response, int]:
    """
    Create an account and open its first session.

    Request Body (JSON):
        name: Display name (required)
        email: Login address (required, unique)
        password: At least 6 characters, must not contain "password"

    Returns:
        201 with ``user`` and ``token``; 400 on invalid or duplicate data.
    """
    fields = validate_user_fields(get_json_object())

    if _email_taken(fields["email"]):
        raise ValidationError("Email is already registered")

    user = User(name=fields["name"], email=fields["email"])
    user.set_password(fields["password"])
    db.session.add(user)
    _commit_user_changes()

    token = issue_token(user)
    logger.info("Signed up user_id=%s", user.id)
    return jsonify({"user": user.to_dict(), "token": token}), 201


@users_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """
    Verify credentials and open an additional session.

    The email goes through the same normalization as at signup.  Malformed
    email, unknown email and wrong password all produce the same 400.
    """
    data = get_json_object()
    password = data.get("password")
    if not isinstance(password, str):
        raise AuthError()
    try:
        email = clean_email(data.get("email"))
    except ValidationError as exc:
        raise AuthError() from exc

    user = db.session.scalar(select(User).where(User.email == email))
    if user is None or not user.check_password(password):
        logger.warning("Failed login attempt")
        raise AuthError()

    token = issue_token(user)
    return jsonify({"user": user.to_dict(), "token": token}), 200


@users_bp.route("/logout", methods=["POST"])
@require_auth
def logout() -> tuple[Response, int]:
    revoke_token(g.user, g.token)
    return jsonify({"message": "Logged out"}), 200


@users_bp.route("/logoutAll", methods=["POST"])
@require_auth
def logout_all() -> tuple[Response, int]:
    revoke_all_tokens(g.user)
    return jsonify({"message": "Logged out of all sessions"}), 200


# -----------------------------------------------------------------------------
# Profile Endpoints
# -----------------------------------------------------------------------------

@users_bp.route("/me", methods=["GET"])
@require_auth
def get_profile() -> tuple[Response, int]:
    return jsonify(g.user.to_dict()), 200


@users_bp.route("/me", methods=["PATCH"])
@require_auth
def update_profile() -> tuple[Response, int]:
    """
    Update the authenticated user's profile.

    Only ``name``, ``email`` and ``password`` may be sent; any other key
    rejects the whole request before anything is changed.

    Returns:
        200 with the updated user; 400 on unknown keys, invalid values or
        an email that belongs to another account.
    """
    user = g.user
    data = get_json_object()
    reject_unknown_fields(data, USER_UPDATE_FIELDS)
    fields = validate_user_fields(data, partial=True)

    if "email" in fields and _email_taken(fields["email"], exclude_user_id=user.id):
        raise ValidationError("Email is already registered")

    if "name" in fields:
        user.name = fields["name"]
    if "email" in fields:
        user.email = fields["email"]
    if "password" in fields:
        user.set_password(fields["password"])
    _commit_user_changes()

    logger.info("Updated profile for user_id=%s (%s)", user.id, ", ".join(sorted(fields)))
    return jsonify(user.to_dict()), 200


@users_bp.route("/me", methods=["DELETE"])
@require_auth
def delete_profile() -> tuple[Response, int]:
    """Delete the account; its tasks and tokens go with it."""
    user = g.user
    body = user.to_dict()
    db.session.delete(user)
    db.session.commit()

    logger.info("Deleted user_id=%s", body["id"])
    return jsonify(body), 200


# -----------------------------------------------------------------------------
# Avatar Endpoints
# -----------------------------------------------------------------------------

@users_bp.route("/me/avatar", methods=["POST"])
@require_auth
def upload_avatar() -> tuple[Response, int]:
    """
    Store a jpg/png avatar sent as the multipart field ``avatar``.

    Requests larger than ``MAX_CONTENT_LENGTH`` are refused by Werkzeug
    before the body is read; the image itself is capped at
    ``AVATAR_MAX_BYTES``.
    """
    content, mimetype = read_avatar(
        request.files.get("avatar"),
        current_app.config["AVATAR_MAX_BYTES"],
    )

    user = g.user
    user.avatar = content
    user.avatar_mimetype = mimetype
    db.session.commit()

    logger.info("Stored %s-byte avatar for user_id=%s", len(content), user.id)
    return jsonify({"message": "Avatar uploaded"}), 200


@users_bp.route("/me/avatar", methods=["DELETE"])
@require_auth
def delete_avatar() -> tuple[Response, int]:
    user = g.user
    user.avatar = None
    user.avatar_mimetype = None
    db.session.commit()
    return jsonify({"message": "Avatar removed"}), 200


@users_bp.route(f"/<int(max={MAX_ROW_ID}):user_id>/avatar", methods=["GET"])
def get_avatar(user_id: int) -> Response:
    user = db.session.get(User, user_id)
    if user is None or user.avatar is None:
        raise NotFound("Avatar not found")
    return Response(user.avatar, mimetype=user.avatar_mimetype)
