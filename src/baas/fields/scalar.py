"""Scalar and structured field types."""

import json
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar
from urllib.parse import urlparse

from sqlalchemy import JSON, BigInteger, Boolean, Date, DateTime, Numeric, String, Text
from sqlalchemy.types import TypeEngine

from src.baas.fields.base import (
    FieldTypePlugin,
    FilterMode,
    OutputContext,
    ValidationResult,
    as_list,
)
from src.baas.models.enums import FieldKind

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TRUE_VALUES = frozenset({True, 1, "1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({False, 0, "0", "false", "no", "off"})
BIGINT_MIN, BIGINT_MAX = -(2**63), 2**63 - 1


def parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value)
    return None


def parse_bool(value: Any) -> bool | None:
    key = value.strip().lower() if isinstance(value, str) else value
    try:
        if key in _TRUE_VALUES:
            return True
        if key in _FALSE_VALUES:
            return False
    except TypeError:  # unhashable input
        return None
    return None


class StringField(FieldTypePlugin):
    kind = FieldKind.STRING
    label = "Text (plain)"
    filter_mode = FilterMode.CONTAINS

    def default_settings(self) -> dict[str, Any]:
        return {"max_length": 255}

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        max_length = settings.get("max_length")
        if parse_int(max_length) is None or not 1 <= int(max_length) <= 4000:
            return ["max_length must be an integer between 1 and 4000"]
        return []

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return String(int(settings.get("max_length", 255)))

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            return ValidationResult.failure("Must be a string")
        max_length = int(settings.get("max_length", 255))
        if len(str(value)) > max_length:
            return ValidationResult.failure(f"Must be at most {max_length} characters")
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return str(value)


class TextField(StringField):
    kind = FieldKind.TEXT
    label = "Text (long)"

    def default_settings(self) -> dict[str, Any]:
        return {}

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        return []

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return Text()

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if not isinstance(value, str):
            return ValidationResult.failure("Must be a string")
        return ValidationResult.success()


class EmailField(StringField):
    kind = FieldKind.EMAIL
    label = "Email"

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if not isinstance(value, str) or not EMAIL_REGEX.match(value):
            return ValidationResult.failure("Must be a valid email address")
        return super().validate(value, settings)

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return str(value).strip()


class UrlField(StringField):
    kind = FieldKind.URL
    label = "Link"

    def default_settings(self) -> dict[str, Any]:
        return {"max_length": 2048}

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        parsed = urlparse(value) if isinstance(value, str) else None
        if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
            return ValidationResult.failure("Must be an absolute http(s) URL")
        return super().validate(value, settings)


class IntegerField(FieldTypePlugin):
    kind = FieldKind.INTEGER
    label = "Number (integer)"

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        bounds = {key: settings.get(key) for key in ("min", "max")}
        for key, bound in bounds.items():
            if bound is not None and (not isinstance(bound, int) or isinstance(bound, bool)):
                return [f"{key} must be an integer"]
            if bound is not None and not BIGINT_MIN <= bound <= BIGINT_MAX:
                return [f"{key} is outside the 64-bit integer range"]
        if None not in bounds.values() and bounds["min"] > bounds["max"]:
            return ["min must not be greater than max"]
        return []

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return BigInteger()

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        number = parse_int(value)
        if number is None:
            return ValidationResult.failure("Must be an integer")
        if not BIGINT_MIN <= number <= BIGINT_MAX:
            return ValidationResult.failure("Must fit in a 64-bit integer")
        errors = []
        if settings.get("min") is not None and number < settings["min"]:
            errors.append(f"Must be at least {settings['min']}")
        if settings.get("max") is not None and number > settings["max"]:
            errors.append(f"Must be at most {settings['max']}")
        return ValidationResult(errors=errors)

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return parse_int(value)


class DecimalField(FieldTypePlugin):
    kind = FieldKind.DECIMAL
    label = "Number (decimal)"

    def default_settings(self) -> dict[str, Any]:
        return {"precision": 10, "scale": 2}

    def validate_settings(self, settings: dict[str, Any]) -> list[str]:
        precision, scale = settings.get("precision"), settings.get("scale")
        if parse_int(precision) is None or parse_int(scale) is None:
            return ["precision and scale must be integers"]
        if not 1 <= int(precision) <= 38 or not 0 <= int(scale) <= int(precision):
            return ["precision must be 1..38 and scale 0..precision"]
        return []

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return Numeric(int(settings.get("precision", 10)), int(settings.get("scale", 2)))

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if isinstance(value, bool):
            return ValidationResult.failure("Must be a decimal number")
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return ValidationResult.failure("Must be a decimal number")
        if not number.is_finite():
            return ValidationResult.failure("Must be a finite number")
        precision, scale = int(settings.get("precision", 10)), int(settings.get("scale", 2))
        _, digits, exponent = number.as_tuple()
        digits = list(digits)
        # Trailing fractional zeros do not count against the scale
        while exponent < 0 and digits and digits[-1] == 0:
            digits.pop()
            exponent += 1
        fraction_digits = max(0, -exponent)
        integer_digits = 0 if number == 0 else max(0, number.adjusted() + 1)
        if fraction_digits > scale:
            return ValidationResult.failure(f"Must have at most {scale} decimal places")
        if integer_digits > precision - scale:
            return ValidationResult.failure(
                f"Must have at most {precision - scale} digits before the decimal point"
            )
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return Decimal(str(value))

    def transform_for_output(
        self, stored: Any, settings: dict[str, Any], ctx: OutputContext
    ) -> Any:
        return None if stored is None else float(stored)


class BooleanField(FieldTypePlugin):
    kind = FieldKind.BOOLEAN
    label = "Boolean"

    def default_settings(self) -> dict[str, Any]:
        return {"default_value": False}

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return Boolean()

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if parse_bool(value) is None:
            return ValidationResult.failure("Must be a boolean")
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return parse_bool(value)

    def transform_for_output(
        self, stored: Any, settings: dict[str, Any], ctx: OutputContext
    ) -> Any:
        return None if stored is None else bool(stored)


class DateField(FieldTypePlugin):
    kind = FieldKind.DATE
    label = "Date"

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return Date()

    def _parse(self, value: Any) -> date | None:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                return None
        return None

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if self._parse(value) is None:
            return ValidationResult.failure("Must be an ISO 8601 date (YYYY-MM-DD)")
        return ValidationResult.success()

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        return self._parse(value)

    def transform_for_output(
        self, stored: Any, settings: dict[str, Any], ctx: OutputContext
    ) -> Any:
        return stored.isoformat() if isinstance(stored, date) else stored


class DateTimeField(DateField):
    kind = FieldKind.DATETIME
    label = "Date and time"

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return DateTime()

    def _parse(self, value: Any) -> datetime | None:  # type: ignore[override]
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip())
            except ValueError:
                return None
        return None

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if self._parse(value) is None:
            return ValidationResult.failure("Must be an ISO 8601 date/time")
        return ValidationResult.success()


class JsonField(FieldTypePlugin):
    kind = FieldKind.JSON
    label = "JSON"
    filter_mode = FilterMode.NONE

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        return JSON()

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            return ValidationResult.failure("Must be JSON-serializable")
        return ValidationResult.success()


class ListStringField(FieldTypePlugin):
    """Selection from a fixed list of allowed values, single or multiple."""

    kind = FieldKind.LIST_STRING
    label = "List (text)"
    item_label: ClassVar[str] = "a string"

    def default_settings(self) -> dict[str, Any]:
        return {"allowed_values": [], "multiple": False}

    def allowed(self, settings: dict[str, Any]) -> list[Any]:
        # Either a list of values or a {value: label} mapping
        allowed_values = settings.get("allowed_values") or []
        if isinstance(allowed_values, dict):
            return list(allowed_values)
        return list(allowed_values)

    def _item(self, value: Any) -> Any:
        return value if isinstance(value, str) else None

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        if self.is_multiple(settings):
            return JSON()
        return String(255)

    def filter_mode_for(self, settings: dict[str, Any]) -> FilterMode:
        return FilterMode.NONE if self.is_multiple(settings) else FilterMode.EXACT

    def validate(self, value: Any, settings: dict[str, Any]) -> ValidationResult:
        if self.is_multiple(settings):
            if not isinstance(value, (list, tuple)):
                return ValidationResult.failure("Must be a list")
            items = list(value)
        else:
            items = [value]

        allowed = self.allowed(settings)
        errors = []
        for item in items:
            parsed = self._item(item)
            if parsed is None:
                errors.append(f"Each value must be {self.item_label}")
            elif allowed and parsed not in allowed:
                errors.append(f"'{item}' is not an allowed value")
        return ValidationResult(errors=errors)

    def transform_for_storage(self, value: Any, settings: dict[str, Any]) -> Any:
        if self.is_multiple(settings):
            return [self._item(item) for item in as_list(value)]
        return self._item(value)


class ListIntegerField(ListStringField):
    kind = FieldKind.LIST_INTEGER
    label = "List (integer)"
    item_label = "an integer"

    def _item(self, value: Any) -> Any:
        number = parse_int(value)
        return number if number is not None and BIGINT_MIN <= number <= BIGINT_MAX else None

    def allowed(self, settings: dict[str, Any]) -> list[Any]:
        return [parse_int(v) for v in super().allowed(settings)]

    def storage_type(self, settings: dict[str, Any]) -> TypeEngine:
        if self.is_multiple(settings):
            return JSON()
        return BigInteger()
