"""
Column accumulator.

An ``Attribute`` is one output column being filled row by row.  Its type is
fixed by the first non-null value and then follows a one-way conversion
lattice as later values disagree:

    int64 --(float arrives)--> float64
    any   --(incompatible)---> string

Every structural change is logged and recorded as a ``Diagnostic`` so the
caller can report it next to the result.
"""
from __future__ import annotations

import json
from typing import Any

from dynaframe.core.errors import DecodeError
from dynaframe.core.logging import get_logger
from dynaframe.core.utils import Diagnostic
from dynaframe.engine.attribute_value import (
    BINARY_SET_TAG,
    BINARY_TAG,
    JSON_KINDS,
    UNIX_MILLISECONDS,
    UNIX_SECONDS,
    FieldType,
    SourceValue,
    ValueKind,
    decode_value,
    format_cell_as_text,
    format_float,
    from_unix_milliseconds,
    from_unix_seconds,
    is_time_layout,
    parse_number,
    parse_time,
    to_json_text,
)

logger = get_logger(__name__)

# Stand-ins appended when a composite value cannot be rendered as JSON
_JSON_FALLBACK_TAGS = {
    ValueKind.M: "[M]",
    ValueKind.L: "[L]",
    ValueKind.SS: "[SS]",
    ValueKind.NS: "[NS]",
}


class Attribute:
    """One named output column and its value buffer."""

    def __init__(
        self,
        name: str,
        field_type: FieldType,
        values: list[Any] | None = None,
        datetime_format: str = "",
    ):
        self.name = name
        self.field_type = field_type
        self.values: list[Any] = values if values is not None else []
        self.datetime_format = datetime_format
        self.diagnostics: list[Diagnostic] = []

    def __repr__(self) -> str:
        return f"Attribute(name={self.name!r}, type={self.field_type.value}, size={self.size()})"

    @classmethod
    def create(
        cls,
        row_index: int,
        name: str,
        value: SourceValue,
        datetime_format: str = "",
    ) -> "Attribute | None":
        """Start a column at ``row_index`` from its first value.

        The buffer is pre-filled with ``row_index`` nulls so it lines up with
        earlier rows.  Returns ``None`` when the first value is NULL; the
        column is then created later, when a concrete value shows up.
        """
        cell = decode_value(value, datetime_format)
        if cell is None:
            return None
        values: list[Any] = [None] * row_index
        values.append(cell.value)
        return cls(name, cell.field_type, values, datetime_format)

    def size(self) -> int:
        return len(self.values)

    def append_null(self) -> None:
        self.values.append(None)

    def append(self, value: SourceValue) -> None:
        """Append one value, converting the column when the types disagree."""
        kind = value.kind
        if kind is ValueKind.S:
            self._append_string(value.value)
        elif kind is ValueKind.N:
            self._append_number(value.value)
        elif kind is ValueKind.B:
            self._append_tag(BINARY_TAG, got="binary")
        elif kind is ValueKind.BS:
            self._append_tag(BINARY_SET_TAG, got="binary set")
        elif kind is ValueKind.BOOL:
            self._append_bool(value.value)
        elif kind is ValueKind.NULL:
            self.values.append(None)
        elif kind in JSON_KINDS:
            self._append_json(value)
        else:
            raise DecodeError(f"unsupported attribute value kind {kind!r} for field {self.name!r}")

    # ── Per-kind appenders ───────────────────────────────

    def _append_string(self, text: str) -> None:
        if is_time_layout(self.datetime_format):
            if self.field_type is FieldType.TIME:
                self.values.append(parse_time(text, self.datetime_format))
                return
            self._convert_to_string(got="string")
            self.values.append(text)
            return

        if self.field_type is not FieldType.STRING:
            self._convert_to_string(got="string")
        self.values.append(text)

    def _append_number(self, text: str) -> None:
        as_int, as_float = parse_number(text)

        if as_int is not None:
            fmt = self.datetime_format
            if fmt in (UNIX_SECONDS, UNIX_MILLISECONDS):
                if self.field_type is FieldType.TIME:
                    if fmt == UNIX_SECONDS:
                        self.values.append(from_unix_seconds(as_int))
                    else:
                        self.values.append(from_unix_milliseconds(as_int))
                    return
                self._convert_to_string(got="number")
                self.values.append(str(as_int))
                return
            if fmt:
                raise DecodeError(
                    f"invalid datetime format {fmt!r} for numeric field {self.name!r}"
                )

            if self.field_type is FieldType.INT64:
                self.values.append(as_int)
            elif self.field_type is FieldType.FLOAT64:
                self.values.append(float(as_int))
            else:
                self._convert_to_string(got="number")
                self.values.append(str(as_int))
            return

        if self.field_type is FieldType.FLOAT64:
            self.values.append(as_float)
        elif self.field_type is FieldType.INT64:
            self._widen_to_float()
            self.values.append(as_float)
        else:
            self._convert_to_string(got="number")
            self.values.append(format_float(as_float))

    def _append_bool(self, flag: bool) -> None:
        if self.field_type is FieldType.BOOL:
            self.values.append(flag)
            return
        self._convert_to_string(got="bool")
        self.values.append("true" if flag else "false")

    def _append_tag(self, tag: str, got: str) -> None:
        self._convert_to_string(got=got)
        self.values.append(tag)

    def _append_json(self, value: SourceValue) -> None:
        try:
            text = to_json_text(value)
        except DecodeError as exc:
            tag = _JSON_FALLBACK_TAGS[value.kind]
            logger.warning(
                "JSON serialisation failed, using placeholder | field=%s | placeholder=%s | error=%s",
                self.name, tag, exc,
            )
            self.diagnostics.append(Diagnostic(
                kind="json_fallback",
                message=f"value could not be serialised to JSON, stored {tag}",
                field=self.name,
                detail={"placeholder": tag, "error": str(exc)},
            ))
            if self.field_type is FieldType.JSON:
                # JSON columns must keep holding valid JSON text
                self.values.append(json.dumps(tag))
            else:
                self._convert_to_string(got="json")
                self.values.append(tag)
            return

        if self.field_type is not FieldType.JSON:
            self._convert_to_string(got="json")
        self.values.append(text)

    # ── Structural changes ───────────────────────────────

    def _widen_to_float(self) -> None:
        self.values = [None if v is None else float(v) for v in self.values]
        self.field_type = FieldType.FLOAT64
        logger.info("Widening field to float64 | field=%s | rows=%d", self.name, len(self.values))
        self.diagnostics.append(Diagnostic(
            kind="widened",
            message="int64 column widened to float64",
            field=self.name,
            detail={"from": FieldType.INT64.value, "to": FieldType.FLOAT64.value},
        ))

    def _convert_to_string(self, got: str) -> None:
        if self.field_type is FieldType.STRING:
            return
        previous = self.field_type
        self.values = [format_cell_as_text(previous, v) for v in self.values]
        self.field_type = FieldType.STRING
        logger.warning(
            "Type mismatch, converting field to string | field=%s | expected=%s | got=%s",
            self.name, previous.value, got,
        )
        self.diagnostics.append(Diagnostic(
            kind="converted_to_string",
            message=f"{previous.value} column converted to string after a {got} value",
            field=self.name,
            detail={"from": previous.value, "got": got},
        ))
