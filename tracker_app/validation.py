"""
Request validation helpers.

Every check here runs before a route touches the database, and each one
raises ``ValidationError`` on the first problem it finds, so a rejected
request never leaves a partial update behind.

Update endpoints accept only an explicit allow-list of keys
(``USER_UPDATE_FIELDS`` / ``TASK_UPDATE_FIELDS``); any other key rejects
the whole request.
"""

from __future__ import annotations

from typing import Any

from email_validator import EmailNotValidError, validate_email
from flask import request
from werkzeug.datastructures import FileStorage

from .errors import ValidationError

USER_UPDATE_FIELDS = frozenset({"name", "email", "password"})
TASK_UPDATE_FIELDS = frozenset({"description", "completed"})

PASSWORD_MIN_LENGTH = 6
FORBIDDEN_PASSWORD_TEXT = "password"
NAME_MAX_LENGTH = 120

AVATAR_EXTENSIONS = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}
IMAGE_SIGNATURES = {
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"\xff\xd8\xff": "image/jpeg",
}


def get_json_object() -> dict[str, Any]:
    """Return the request body as a dict, or raise if it is not a JSON object."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def reject_unknown_fields(data: dict[str, Any], allowed: frozenset[str]) -> None:
    """Raise unless every key in *data* is in *allowed*."""
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(f"Invalid updates: {', '.join(unknown)}")


def clean_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("'name' is required")
    name = value.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"'name' must be {NAME_MAX_LENGTH} characters or less")
    return name


def clean_email(value: Any) -> str:
    """
    Validate an email address and return it trimmed and lower-cased.

    Only the syntax is checked; no DNS lookups are made.  Addresses under
    the reserved ``test`` domain are accepted for development accounts.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("'email' is required")
    try:
        result = validate_email(
            value.strip(), check_deliverability=False, test_environment=True
        )
    except EmailNotValidError as exc:
        raise ValidationError("Email is invalid") from exc
    return result.normalized.lower()


def check_password(value: Any) -> str:
    """Apply the password rules and return the password unchanged."""
    if not isinstance(value, str) or not value:
        raise ValidationError("'password' is required")
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if FORBIDDEN_PASSWORD_TEXT in value.lower():
        raise ValidationError(f"Password cannot contain '{FORBIDDEN_PASSWORD_TEXT}'")
    return value


_USER_FIELD_CHECKS = {
    "name": clean_name,
    "email": clean_email,
    "password": check_password,
}


def validate_user_fields(data: dict[str, Any], *, partial: bool = False) -> dict[str, str]:
    """
    Validate user fields and return the cleaned values.

    Args:
        data: The parsed JSON body.
        partial: When ``True`` only the fields present in *data* are
            checked (profile update); otherwise all three are required
            (signup).  Keys outside the user fields are not returned.

    Returns:
        A dict of cleaned ``name`` / ``email`` / ``password`` values.
    """
    cleaned: dict[str, str] = {}
    for field, check in _USER_FIELD_CHECKS.items():
        if partial and field not in data:
            continue
        cleaned[field] = check(data.get(field))
    return cleaned


def clean_description(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("'description' is required")
    return value.strip()


def check_completed(value: Any) -> bool:
    # JSON true/false only; "", 0, 1 and "true" are all rejected
    if not isinstance(value, bool):
        raise ValidationError("'completed' must be a boolean")
    return value


def validate_task_fields(data: dict[str, Any], *, partial: bool = False) -> dict[str, Any]:
    """
    Validate task fields and return the cleaned values.

    ``description`` is required unless *partial* is set; ``completed`` is
    always optional.
    """
    cleaned: dict[str, Any] = {}
    if not partial or "description" in data:
        cleaned["description"] = clean_description(data.get("description"))
    if "completed" in data:
        cleaned["completed"] = check_completed(data["completed"])
    return cleaned


def sniff_image_type(head: bytes) -> str | None:
    """Return the image mimetype whose magic bytes start *head*, if any."""
    for signature, mimetype in IMAGE_SIGNATURES.items():
        if head.startswith(signature):
            return mimetype
    return None


def read_avatar(upload: FileStorage | None, max_bytes: int) -> tuple[bytes, str]:
    """
    Validate an uploaded avatar and return its bytes and mimetype.

    The filename must end in ``.jpg``, ``.jpeg`` or ``.png`` and the
    content must start with the matching image signature.  At most
    ``max_bytes + 1`` bytes are read from the stream.
    """
    if upload is None or not upload.filename:
        raise ValidationError("Please upload an image in the 'avatar' field")

    extension = upload.filename.rsplit(".", 1)[-1].lower() if "." in upload.filename else ""
    expected_type = AVATAR_EXTENSIONS.get(extension)
    if expected_type is None:
        raise ValidationError("Please upload a jpg, jpeg or png image")

    content = upload.stream.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise ValidationError("File too large")
    if not content:
        raise ValidationError("Uploaded file is empty")

    actual_type = sniff_image_type(content)
    if actual_type != expected_type:
        raise ValidationError("Uploaded file is not a valid image")
    return content, actual_type
