"""
Security helpers for hashing credentials and encrypting sensitive fields.
"""

from __future__ import annotations

import base64
import hashlib
import os
import secrets
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from werkzeug.security import check_password_hash, generate_password_hash


def normalize_identifier(value: str | None) -> str:
    """Normalize identifiers such as emails before lookups."""
    if not value:
        return ""
    return value.strip().lower()


def _derive_key_from_secret(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


@lru_cache(maxsize=1)
def _fernet() -> Fernet:
    key = os.getenv("ENCRYPTION_KEY")
    if key:
        try:
            return Fernet(key.encode("utf-8"))
        except ValueError:
            # Not a Fernet key; derive one from the raw value instead.
            return Fernet(_derive_key_from_secret(key))
    secret = os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError(
            "ENCRYPTION_KEY or SECRET_KEY environment variable must be set "
            "to encrypt personal data."
        )
    return Fernet(_derive_key_from_secret(secret))


def reset_encryption_key_cache() -> None:
    _fernet.cache_clear()


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str | None, stored_hash: str | None) -> bool:
    if not password or not stored_hash:
        return False
    return check_password_hash(stored_hash, password)


def hash_token(token: str) -> str:
    """
    Hash a bearer token so the session table never stores the raw value.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_one_time_token() -> str:
    """Random hex token for password reset and email verification links."""
    return secrets.token_hex(32)


def encrypt_string(value: str | None) -> str | None:
    """
    Encrypt a string using Fernet. Returns None when the input is None.
    """
    if value is None:
        return None
    token = _fernet().encrypt(value.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_string(value: str | None) -> str | None:
    """
    Decrypt a previously encrypted string. Returns None when the input is None
    or the ciphertext was produced with a different key.
    """
    if value is None:
        return None
    try:
        return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        return None
