"""
RSA key material for signing session tokens.

``generate_key_pair`` returns an in-memory PEM pair (used by the test
suite).  Running the module writes a development pair to disk where
``config.load_jwt_keys`` picks it up when no key variables are set::

    python -m tracker_app.keys            # writes keys/dev.*.pem
    python -m tracker_app.keys --force    # replaces an existing pair
"""

from __future__ import annotations

import argparse
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from config import KEYS_DIR

PRIVATE_KEY_NAME = "dev.private.pem"
PUBLIC_KEY_NAME = "dev.public.pem"


def generate_key_pair(key_size: int = 2048) -> tuple[str, str]:
    """Generate an RSA private/public key pair as PEM strings."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


def write_key_pair(directory: Path, *, force: bool = False) -> tuple[Path, Path] | None:
    """
    Write a fresh key pair into *directory*.

    Returns the two written paths, or ``None`` when both files already
    exist and *force* is not set.

    Raises:
        FileExistsError: If exactly one of the two files exists.
    """
    private_path = directory / PRIVATE_KEY_NAME
    public_path = directory / PUBLIC_KEY_NAME
    private_exists = private_path.exists()
    public_exists = public_path.exists()

    if not force:
        if private_exists and public_exists:
            return None
        if private_exists != public_exists:
            raise FileExistsError(
                "Only one key file exists. Remove it or pass --force to regenerate both."
            )

    directory.mkdir(parents=True, exist_ok=True)
    private_pem, public_pem = generate_key_pair()
    private_path.write_text(private_pem, encoding="utf-8")
    public_path.write_text(public_pem, encoding="utf-8")
    return private_path, public_path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate a development JWT key pair.")
    parser.add_argument("--out-dir", type=Path, default=KEYS_DIR)
    parser.add_argument("--force", action="store_true", help="overwrite existing keys")
    args = parser.parse_args(argv)

    try:
        written = write_key_pair(args.out_dir, force=args.force)
    except FileExistsError as exc:
        raise SystemExit(str(exc)) from exc

    if written is None:
        print(f"Keys already exist in {args.out_dir}, skipping")
        return 0
    for path in written:
        print(f"Generated: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
