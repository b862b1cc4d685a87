"""
Settings for the task tracker.

One class per environment, selected by name through ``get_config``.
Scalar settings read environment variables at import time; JWT key
material is resolved later by ``load_jwt_keys`` because it may come from
raw PEM variables, key-file paths or the development key pair written by
``python -m tracker_app.keys``.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent
KEYS_DIR = BASE_DIR / "keys"


def _load_key(raw_env_var: str, path_env_var: str, default_path: Path | None = None) -> str:
    """
    Load a PEM key from a raw environment variable, a path variable or a default file.

    The raw PEM variable takes precedence over the path variable so
    orchestrators can inject secrets directly without mounting files.
    """
    raw_key = os.environ.get(raw_env_var, "").strip()
    if raw_key:
        return raw_key

    key_path = os.environ.get(path_env_var, "").strip()
    if key_path:
        try:
            return Path(key_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(
                f"Unable to read JWT key file at '{key_path}' from {path_env_var}."
            ) from exc

    if default_path is not None and default_path.is_file():
        return default_path.read_text(encoding="utf-8")

    raise RuntimeError(
        f"Missing JWT key configuration: set {raw_env_var} or {path_env_var}, "
        "or run 'python -m tracker_app.keys' to create a development key pair."
    )


def _has_key_source(raw_env_var: str, path_env_var: str) -> bool:
    """Return True when at least one key source variable is configured."""
    return bool(
        os.environ.get(raw_env_var, "").strip()
        or os.environ.get(path_env_var, "").strip()
    )


def load_jwt_keys(*, testing: bool) -> tuple[str, str]:
    """
    Resolve the JWT private/public key pair for the selected environment.

    In testing mode, TEST_* vars are used when configured; otherwise it falls
    back to the standard JWT_* variables and then to the development key files.
    """
    if testing and (
        _has_key_source("TEST_JWT_PRIVATE_KEY", "TEST_JWT_PRIVATE_KEY_PATH")
        or _has_key_source("TEST_JWT_PUBLIC_KEY", "TEST_JWT_PUBLIC_KEY_PATH")
    ):
        return (
            _load_key("TEST_JWT_PRIVATE_KEY", "TEST_JWT_PRIVATE_KEY_PATH"),
            _load_key("TEST_JWT_PUBLIC_KEY", "TEST_JWT_PUBLIC_KEY_PATH"),
        )

    return (
        _load_key("JWT_PRIVATE_KEY", "JWT_PRIVATE_KEY_PATH", KEYS_DIR / "dev.private.pem"),
        _load_key("JWT_PUBLIC_KEY", "JWT_PUBLIC_KEY_PATH", KEYS_DIR / "dev.public.pem"),
    )


def _env_int(name: str, default: int) -> int:
    """Read an integer setting, failing at startup rather than on first use."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


def _sqlite_uri(filename: str, **query: str) -> str:
    uri = f"sqlite:///{BASE_DIR / 'instance' / filename}"
    if query:
        uri += "?" + "&".join(f"{key}={value}" for key, value in query.items())
    return uri


def _request_ceiling(avatar_max_bytes: int) -> int:
    # Multipart boundaries and headers travel alongside the image itself
    return avatar_max_bytes + 64 * 1024


class Config:
    """
    Settings shared by every environment.

    Each subclass overrides only what differs.  The avatar ceiling and the
    request ceiling move together, so a subclass that changes
    ``AVATAR_MAX_BYTES`` recomputes ``MAX_CONTENT_LENGTH`` as well.
    """

    SECRET_KEY: str = os.environ.get("SECRET_KEY", "tracker-dev-secret")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SQLALCHEMY_DATABASE_URI: str = os.environ.get("DATABASE_URL") or _sqlite_uri("tracker.db")

    JWT_CLOCK_SKEW_SECONDS: int = _env_int("JWT_CLOCK_SKEW_SECONDS", 30)

    AVATAR_MAX_BYTES: int = _env_int("AVATAR_MAX_BYTES", 1_000_000)
    MAX_CONTENT_LENGTH: int = _request_ceiling(AVATAR_MAX_BYTES)


class DevelopmentConfig(Config):
    """Local runs: debug pages on, keys from ``keys/`` unless overridden."""

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """
    Pytest runs.

    Uses its own SQLite file, shared across the test client's threads, and
    a 4 KiB avatar ceiling so oversize uploads are cheap to build.
    """

    DEBUG: bool = True
    TESTING: bool = True

    SQLALCHEMY_DATABASE_URI: str = os.environ.get("TEST_DATABASE_URL") or _sqlite_uri(
        "test_tracker.db", check_same_thread="False"
    )
    SQLALCHEMY_ENGINE_OPTIONS: dict = {"pool_pre_ping": True}

    AVATAR_MAX_BYTES: int = 4096
    MAX_CONTENT_LENGTH: int = _request_ceiling(AVATAR_MAX_BYTES)


class ProductionConfig(Config):
    """Deployed service with debug pages off."""

    DEBUG: bool = False
    TESTING: bool = False


ENVIRONMENTS: dict[str, type[Config]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Pick the settings class for *env*, or for ``FLASK_ENV`` when omitted.

    Unrecognised names fall back to development settings.
    """
    name = env or os.environ.get("FLASK_ENV", "development")
    return ENVIRONMENTS.get(name, DevelopmentConfig)
