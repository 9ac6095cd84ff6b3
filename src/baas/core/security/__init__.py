"""Security utilities - crypto and validators.

Re-exports all security-related functions for convenience.
"""

from src.baas.core.security.crypto import (
    fingerprint,
    hash_password,
    is_password_hash,
    verify_password,
)
from src.baas.core.security.validators import (
    IDENTIFIER_REGEX,
    MAX_IDENTIFIER_LENGTH,
    Identifier,
    is_valid_identifier,
    validate_identifier,
)

__all__ = [
    # Crypto
    "fingerprint",
    "hash_password",
    "is_password_hash",
    "verify_password",
    # Validators
    "IDENTIFIER_REGEX",
    "MAX_IDENTIFIER_LENGTH",
    "Identifier",
    "is_valid_identifier",
    "validate_identifier",
]
