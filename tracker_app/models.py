"""
Database models for the task tracker.

Three tables back the API:

* ``users``       -- registered accounts with a hashed password and an
  optional avatar image.
* ``user_tokens`` -- the ordered list of active session tokens per user.
  Logging in appends a row, logging out removes one, and logout-all
  removes them all.
* ``tasks``       -- to-do items, each owned by exactly one user.

Deleting a user cascades to both its tokens and its tasks through the ORM
relationships (and through ``ON DELETE CASCADE`` on databases that enforce
foreign keys).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from . import db

# Largest primary key a signed 64-bit INTEGER column can hold
MAX_ROW_ID = 2**63 - 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert a datetime to an ISO-8601 UTC string.

    SQLite commonly returns naive datetime values even when timezone-aware
    columns are declared, so naive values are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


class User(db.Model):
    """
    A registered account.

    The plain-text password never reaches this model's columns: only the
    Werkzeug hash is stored, and ``to_dict`` leaves out the hash, the
    session tokens and the avatar bytes so its output can be returned
    directly from the API.

    Attributes:
        id: Auto-incrementing primary key.
        name: Display name.
        email: Unique, lower-cased login address.
        password_hash: Salted one-way hash of the password.
        avatar: Optional raw image bytes.
        avatar_mimetype: Content type of ``avatar`` (``image/png`` or
            ``image/jpeg``).
        tokens: Active session tokens in the order they were issued.
        tasks: Tasks owned by this user.
    """

    __tablename__ = "users"

    id: int = db.Column(db.Integer, primary_key=True)
    name: str = db.Column(db.String(120), nullable=False)
    # Unique index: duplicate signups are rejected by the database itself
    email: str = db.Column(db.String(254), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    avatar: bytes | None = db.Column(db.LargeBinary, nullable=True)
    avatar_mimetype: str | None = db.Column(db.String(32), nullable=True)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    tokens = db.relationship(
        "UserToken",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserToken.id",
    )
    tasks = db.relationship(
        "Task",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str) -> None:
        """Hash and store a plain-text password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Return ``True`` if *password* matches the stored hash."""
        return check_password_hash(self.password_hash, password)

    def has_token(self, token: str) -> bool:
        return any(entry.token == token for entry in self.tokens)

    def to_dict(self) -> dict[str, Any]:
        """
        Return the public representation of the user.

        Returns:
            A dict with ``id``, ``name``, ``email``, ``has_avatar``,
            ``created_at`` and ``updated_at``.
        """
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "has_avatar": self.avatar is not None,
            "created_at": _to_utc_iso(self.created_at),
            "updated_at": _to_utc_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"


class UserToken(db.Model):
    """One active session token belonging to a user."""

    __tablename__ = "user_tokens"

    id: int = db.Column(db.Integer, primary_key=True)
    user_id: int = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: str = db.Column(db.String(2048), nullable=False, unique=True)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    user = db.relationship("User", back_populates="tokens")

    def __repr__(self) -> str:
        return f"<UserToken {self.id} for user {self.user_id}>"


class Task(db.Model):
    """
    Task owned by a single user.

    Attributes:
        id: Auto-incrementing primary key.
        owner_id: The owning user.  Set from the authenticated requester
            at creation and never changed afterwards.
        description: What needs doing.
        completed: Whether the task is done.
        created_at: Timestamp of task creation (UTC).
        updated_at: Timestamp of last modification (UTC, auto-updated).
    """

    __tablename__ = "tasks"

    id: int = db.Column(db.Integer, primary_key=True)
    # Every query in the task routes filters on this column
    owner_id: int = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: str = db.Column(db.Text, nullable=False)
    completed: bool = db.Column(db.Boolean, nullable=False, default=False)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    owner = db.relationship("User", back_populates="tasks")

    def to_dict(self) -> dict[str, Any]:
        """
        Serialise the task to a JSON-safe dictionary.

        Returns:
            A dictionary containing all task fields with datetime values
            converted to UTC ISO-8601 strings.
        """
        return {
            "id": self.id,
            "description": self.description,
            "completed": self.completed,
            "owner": self.owner_id,
            "created_at": _to_utc_iso(self.created_at),
            "updated_at": _to_utc_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.description[:30]}>"
