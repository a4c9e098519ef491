"""
AttributeValue decoding: one DynamoDB wire value -> one typed column cell.

A DynamoDB attribute value is a tagged union with exactly one populated
variant (``S``, ``N``, ``B``, ``BOOL``, ``NULL``, ``M``, ``L``, ``SS``, ``NS``,
``BS``).  ``SourceValue`` models that union; ``decode_value`` turns one value
into a ``Cell`` of a concrete ``FieldType``.

Datetime hints
--------------
A column may carry a datetime format:
  * a ``strptime`` layout  -> ``S`` values are parsed into timestamps
  * ``"1"``                -> integer ``N`` values are unix seconds
  * ``"2"``                -> integer ``N`` values are unix milliseconds

Binary payloads are never surfaced: ``B`` / ``BS`` collapse to the tags
``"[B]"`` / ``"[BS]"``.  Composite values (``M``, ``L``, ``SS``, ``NS``) are
rendered as compact JSON text.
"""
from __future__ import annotations

import base64
import json
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, NamedTuple

from dynaframe.core.errors import DecodeError

UNIX_SECONDS = "1"
UNIX_MILLISECONDS = "2"

BINARY_TAG = "[B]"
BINARY_SET_TAG = "[BS]"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ValueKind(str, Enum):
    S = "S"
    N = "N"
    B = "B"
    BOOL = "BOOL"
    NULL = "NULL"
    M = "M"
    L = "L"
    SS = "SS"
    NS = "NS"
    BS = "BS"


JSON_KINDS = frozenset({ValueKind.M, ValueKind.L, ValueKind.SS, ValueKind.NS})


class FieldType(str, Enum):
    """Concrete (nullable) type of an output column."""
    STRING = "string"
    INT64 = "int64"
    FLOAT64 = "float64"
    BOOL = "bool"
    TIME = "time"
    JSON = "json"


class Cell(NamedTuple):
    field_type: FieldType
    value: Any


# ── Source values ────────────────────────────────────────


@dataclass(frozen=True)
class SourceValue:
    """One attribute value as read from the store.

    ``value`` holds: ``str`` for S and N (numbers stay decimal text),
    ``bytes`` for B, ``bool`` for BOOL, ``None`` for NULL,
    ``dict[str, SourceValue]`` for M, ``list[SourceValue]`` for L,
    ``list[str]`` for SS / NS and ``list[bytes]`` for BS.
    """
    kind: ValueKind
    value: Any = None

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> "SourceValue":
        """Parse the low-level boto3 shape, e.g. ``{"S": "abc"}``."""
        if not isinstance(raw, Mapping) or len(raw) != 1:
            keys = sorted(raw) if isinstance(raw, Mapping) else type(raw).__name__
            raise DecodeError(f"attribute value must have exactly one populated variant, got {keys}")

        key, payload = next(iter(raw.items()))
        try:
            kind = ValueKind(key)
        except ValueError:
            raise DecodeError(f"unknown attribute value kind {key!r}") from None

        if kind is ValueKind.M:
            return cls(kind, {name: cls.from_wire(v) for name, v in payload.items()})
        if kind is ValueKind.L:
            return cls(kind, [cls.from_wire(v) for v in payload])
        if kind in (ValueKind.SS, ValueKind.NS):
            return cls(kind, [str(v) for v in payload])
        if kind is ValueKind.BS:
            return cls(kind, [bytes(v) for v in payload])
        if kind is ValueKind.B:
            return cls(kind, bytes(payload))
        if kind is ValueKind.BOOL:
            return cls(kind, bool(payload))
        if kind is ValueKind.NULL:
            return cls(kind, None)
        return cls(kind, str(payload))

    def to_wire(self) -> dict[str, Any]:
        if self.kind is ValueKind.M:
            payload: Any = {name: v.to_wire() for name, v in self.value.items()}
        elif self.kind is ValueKind.L:
            payload = [v.to_wire() for v in self.value]
        elif self.kind is ValueKind.NULL:
            payload = True
        elif self.kind in (ValueKind.SS, ValueKind.NS, ValueKind.BS):
            payload = list(self.value)
        else:
            payload = self.value
        return {self.kind.value: payload}


SourceRow = dict[str, SourceValue]


def parse_item(item: Mapping[str, Mapping[str, Any]]) -> SourceRow:
    """Convert one wire item (attribute name -> wire value) to a SourceRow."""
    return {name: SourceValue.from_wire(raw) for name, raw in item.items()}


# ── Scalar helpers ───────────────────────────────────────


def parse_number(text: str) -> tuple[int | None, float | None]:
    """Classify decimal text as int64 (first slot) or float64 (second slot)."""
    try:
        as_int = int(text)
    except ValueError:
        as_int = None
    if as_int is not None and _INT64_MIN <= as_int <= _INT64_MAX:
        return as_int, None
    try:
        return None, float(text)
    except ValueError:
        raise DecodeError(f"invalid number {text!r}") from None


def is_time_layout(datetime_format: str) -> bool:
    return bool(datetime_format) and datetime_format not in (UNIX_SECONDS, UNIX_MILLISECONDS)


def parse_time(text: str, layout: str) -> datetime:
    try:
        parsed = datetime.strptime(text, layout)
    except ValueError as exc:
        raise DecodeError(f"cannot parse {text!r} with datetime format {layout!r}: {exc}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def from_unix_seconds(seconds: int) -> datetime:
    try:
        return _EPOCH + timedelta(seconds=seconds)
    except OverflowError as exc:
        raise DecodeError(f"unix timestamp {seconds} out of range") from exc


def from_unix_milliseconds(millis: int) -> datetime:
    seconds, remainder = divmod(millis, 1000)
    try:
        return _EPOCH + timedelta(seconds=seconds, milliseconds=remainder)
    except OverflowError as exc:
        raise DecodeError(f"unix millisecond timestamp {millis} out of range") from exc


def format_float(value: float) -> str:
    """Shortest round-tripping decimal text, never in exponent form."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_rfc3339(value: datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def format_cell_as_text(field_type: FieldType, value: Any) -> str | None:
    """Render a concrete cell value back to text (used when a column degrades to string)."""
    if value is None:
        return None
    if field_type is FieldType.INT64:
        return str(value)
    if field_type is FieldType.FLOAT64:
        return format_float(value)
    if field_type is FieldType.TIME:
        return format_rfc3339(value)
    if field_type is FieldType.BOOL:
        return "true" if value else "false"
    return str(value)


# ── Composite values ─────────────────────────────────────


def to_python(value: SourceValue) -> Any:
    """Plain-Python rendering of a source value (numbers as int/float, binary as base64)."""
    kind = value.kind
    if kind is ValueKind.S:
        return value.value
    if kind is ValueKind.N:
        as_int, as_float = parse_number(value.value)
        return as_int if as_int is not None else as_float
    if kind is ValueKind.B:
        return base64.b64encode(value.value).decode("ascii")
    if kind is ValueKind.BOOL:
        return value.value
    if kind is ValueKind.NULL:
        return None
    if kind is ValueKind.M:
        return {name: to_python(v) for name, v in value.value.items()}
    if kind is ValueKind.L:
        return [to_python(v) for v in value.value]
    if kind is ValueKind.SS:
        return list(value.value)
    if kind is ValueKind.NS:
        return [to_python(SourceValue(ValueKind.N, n)) for n in value.value]
    if kind is ValueKind.BS:
        return [base64.b64encode(b).decode("ascii") for b in value.value]
    raise DecodeError(f"unsupported attribute value kind {kind!r}")


def to_json_text(value: SourceValue) -> str:
    try:
        return json.dumps(
            to_python(value),
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError, DecodeError) as exc:
        raise DecodeError(f"cannot serialise {value.kind.value} value to JSON: {exc}") from exc


# ── Decoder ──────────────────────────────────────────────


def decode_value(value: SourceValue, datetime_format: str = "") -> Cell | None:
    """Decode one value into a typed cell; ``None`` for the NULL variant.

    Raises
    ------
    DecodeError
        Unparseable datetime, a layout hint on an integer, an unparseable
        number, or a composite that cannot be serialised to JSON.
    """
    kind = value.kind

    if kind is ValueKind.S:
        if is_time_layout(datetime_format):
            return Cell(FieldType.TIME, parse_time(value.value, datetime_format))
        return Cell(FieldType.STRING, value.value)

    if kind is ValueKind.N:
        as_int, as_float = parse_number(value.value)
        if as_int is None:
            return Cell(FieldType.FLOAT64, as_float)
        if datetime_format == UNIX_SECONDS:
            return Cell(FieldType.TIME, from_unix_seconds(as_int))
        if datetime_format == UNIX_MILLISECONDS:
            return Cell(FieldType.TIME, from_unix_milliseconds(as_int))
        if datetime_format:
            raise DecodeError(f"invalid datetime format {datetime_format!r} for a numeric value")
        return Cell(FieldType.INT64, as_int)

    if kind is ValueKind.B:
        return Cell(FieldType.STRING, BINARY_TAG)
    if kind is ValueKind.BS:
        return Cell(FieldType.STRING, BINARY_SET_TAG)
    if kind is ValueKind.BOOL:
        return Cell(FieldType.BOOL, value.value)
    if kind is ValueKind.NULL:
        return None
    if kind in JSON_KINDS:
        return Cell(FieldType.JSON, to_json_text(value))

    raise DecodeError(f"unsupported attribute value kind {kind!r}")
