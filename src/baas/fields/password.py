"""Password field type: Argon2 hashed at rest, hidden from output by default."""

import re
from typing import Any

from sqlalchemy import String
from sqlalchemy.types import TypeEngine

from src.baas.core.security import hash_password, is_password_hash
from src.baas.fields.base import (
    OMIT,
    FieldTypePlugin,
    FilterMode,
    OutputContext,
    ValidationResult,
)
from src.baas.models.enums import FieldKind

_SPECIAL_CHARS = re.compile(r"[^A-Za-z0-9]")


class PasswordField(FieldTypePlugin):
    kind = FieldKind.PASSWORD
    label = "Password"
    filter_mode = FilterMode.NONE

    def default_settings(self) -> dict[str, Any]:
        return {
            "min_length": 6,
            "max_length": 128,
            "hide_in_api": True,
            "password_policy": {
                "require_uppercase": False,
                "require_lowercase": False,
                "require_numbers": False,
                "require_special_chars": False,
            },
        }

    def merge_settings(self, settings: dict[str, Any] | None) -> dict[str, Any]:
        merged = super().merge_settings(settings)
        policy = {**self.default_settings()["password_policy"]}
        policy.update((settings or {}).get("password_policy") or {})
        merged["password_policy"] = policy
        return merged

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        min_length, max_length = settings.get("min_length"), settings.get("max_length")
        if not isinstance(min_length, int) or not isinstance(max_length, int):
            return ["min_length and max_length must be integers"]
        if not 1 <= min_length <= max_length <= 255:
            return ["Password length bounds must satisfy 1 <= min_length <= max_length <= 255"]
        return []

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        # Argon2id encoded hashes are ~100 characters
        return String(255)

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if not isinstance(value, str):
            return ValidationResult.failure("Must be a string")
        if is_password_hash(value):
            return ValidationResult.success()

        errors = []
        min_length = settings.get("min_length", 6)
        max_length = settings.get("max_length", 128)
        if len(value) < min_length:
            errors.append(f"Password must be at least {min_length} characters long")
        if len(value) > max_length:
            errors.append(f"Password must be at most {max_length} characters long")

        policy = settings.get("password_policy") or {}
        if policy.get("require_uppercase") and not re.search(r"[A-Z]", value):
            errors.append("Password must contain at least one uppercase letter")
        if policy.get("require_lowercase") and not re.search(r"[a-z]", value):
            errors.append("Password must contain at least one lowercase letter")
        if policy.get("require_numbers") and not re.search(r"[0-9]", value):
            errors.append("Password must contain at least one number")
        if policy.get("require_special_chars") and not _SPECIAL_CHARS.search(value):
            errors.append("Password must contain at least one special character")
        return ValidationResult(errors=errors)

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        if is_password_hash(value):
            return value
        return hash_password(value)

    def transform_for_output(
        self, stored: Any, settings: dict[str, Any], ctx: OutputContext
    ) -> Any:
        if settings.get("hide_in_api", True):
            return OMIT
        return stored
