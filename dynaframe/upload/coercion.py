"""
Field-level type coercion for upload items.

Each preset field resolves to one of ``string``, ``number``, ``boolean``,
``json`` or ``auto``; the item value is coerced accordingly and encoded as a
DynamoDB wire value with boto3's ``TypeSerializer``.
"""
from __future__ import annotations

import json
import math
import re
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import TypeSerializer

from dynaframe.core.errors import ValidationError
from dynaframe.upload.presets import UploadField

_serializer = TypeSerializer()

_TYPE_ALIASES = {
    "string": "string",
    "number": "number",
    "numeric": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "json": "json",
    "map": "json",
    "object": "json",
}

_AUTO_TYPES = {"", "auto", "any"}

_DYNAMO_TYPE_HINTS = {
    "N": "number",
    "NUMBER": "number",
    "BOOL": "boolean",
    "BOOLEAN": "boolean",
    "M": "json",
    "MAP": "json",
    "L": "json",
    "LIST": "json",
    "SS": "json",
    "NS": "json",
    "BS": "json",
    "S": "string",
    "STRING": "string",
    "B": "string",
    "BINARY": "string",
    "NULL": "string",
}

_NUMBER_RE = re.compile(r"-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?")

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


def resolve_field_type(field: UploadField) -> str:
    """Declared type first, then the DynamoDB type hint, else ``auto``."""
    declared = (field.type or "").strip().lower()
    if declared in _TYPE_ALIASES:
        return _TYPE_ALIASES[declared]
    if declared not in _AUTO_TYPES:
        return "auto"
    hint = (field.dynamo_type or "").strip().upper()
    return _DYNAMO_TYPE_HINTS.get(hint, "auto")


def trim_trailing_zeros(value: float) -> str:
    text = f"{value:f}".rstrip("0").rstrip(".")
    return text or "0"


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return trim_trailing_zeros(value)
    if isinstance(value, (int, Decimal)):
        return str(value)
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"unable to convert value to string: {exc}") from exc


def to_number_string(value: Any) -> str:
    if isinstance(value, bool):
        raise ValidationError(f"value {value!r} (bool) cannot be converted to number")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"value {value!r} is not a finite number")
        return trim_trailing_zeros(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValidationError("number field cannot be empty string")
        if not _NUMBER_RE.fullmatch(text):
            raise ValidationError(f"invalid number string {value!r}")
        return text
    raise ValidationError(f"value {value!r} ({type(value).__name__}) cannot be converted to number")


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValidationError(f"invalid boolean string {value!r}")
    raise ValidationError(f"value {value!r} ({type(value).__name__}) cannot be converted to boolean")


def _to_dynamo_native(value: Any) -> Any:
    """Floats become ``Decimal`` (recursively) so ``TypeSerializer`` accepts them."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo_native(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo_native(v) for v in value]
    return value


def serialize(value: Any) -> dict[str, Any]:
    """Encode a plain Python value as a DynamoDB wire value."""
    try:
        return _serializer.serialize(_to_dynamo_native(value))
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ValidationError(f"unable to encode value {value!r}: {exc}") from exc


def to_attribute_value(field: UploadField, value: Any) -> dict[str, Any]:
    """Coerce ``value`` per ``field``'s resolved type and encode it."""
    if value is None:
        return {"NULL": True}

    kind = resolve_field_type(field)
    if kind == "string":
        return {"S": to_string(value)}
    if kind == "number":
        return {"N": to_number_string(value)}
    if kind == "boolean":
        return {"BOOL": to_bool(value)}
    if kind == "json":
        if isinstance(value, str):
            if not value.strip():
                return {"NULL": True}
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValidationError(f"invalid JSON for field {field.name!r}: {exc}") from exc
        return serialize(value)
    return serialize(value)
