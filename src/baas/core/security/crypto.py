"""Cryptographic utilities - password hashing and name fingerprints."""

from functools import lru_cache
from hashlib import md5

import argon2

from src.baas.core.config import get_settings


def fingerprint(value: str, length: int) -> str:
    """Return the leading ``length`` hex characters of an MD5 digest.

    Used for deterministic, non-secret naming only.
    """
    return md5(value.encode(), usedforsecurity=False).hexdigest()[:length]


@lru_cache
def _create_password_hasher() -> argon2.PasswordHasher:
    """Create password hasher with settings from config."""
    settings = get_settings()
    return argon2.PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )


def hash_password(password: str) -> str:
    """Hash password using Argon2id."""
    return _create_password_hasher().hash(password)


def is_password_hash(value: str) -> bool:
    """Return True if ``value`` is an encoded Argon2 hash argon2-cffi can parse."""
    try:
        argon2.extract_parameters(value)
    except argon2.exceptions.InvalidHashError:
        return False
    return True


def verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash. Returns False on any error."""
    try:
        return _create_password_hasher().verify(hashed, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False
