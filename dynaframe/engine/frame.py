"""
Frame assembler: a batch of heterogeneous items -> one rectangular frame.

Columns appear in first-seen order.  A column that first shows up at row k is
back-filled with k nulls, and every row pads the columns it did not mention,
so all columns always end up with exactly one value per row.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import pandas as pd

from dynaframe.core.errors import DecodeError
from dynaframe.core.logging import get_logger
from dynaframe.core.utils import Diagnostic
from dynaframe.engine.attribute import Attribute
from dynaframe.engine.attribute_value import FieldType, SourceRow, format_float, format_rfc3339

logger = get_logger(__name__)

_PANDAS_DTYPES = {
    FieldType.STRING: "string",
    FieldType.INT64: "Int64",
    FieldType.FLOAT64: "Float64",
    FieldType.BOOL: "boolean",
    FieldType.JSON: "object",
}


@dataclass
class Frame:
    name: str
    fields: list[Attribute] = field(default_factory=list)
    row_count: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def get_field(self, name: str) -> Attribute | None:
        for attr in self.fields:
            if attr.name == name:
                return attr
        return None

    @property
    def field_names(self) -> list[str]:
        return [attr.name for attr in self.fields]

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready rendering (timestamps as RFC 3339, JSON cells parsed)."""
        return {
            "name": self.name,
            "rowCount": self.row_count,
            "fields": [
                {
                    "name": attr.name,
                    "type": attr.field_type.value,
                    "values": [_json_cell(attr.field_type, v) for v in attr.values],
                }
                for attr in self.fields
            ],
        }

    def to_pandas(self) -> pd.DataFrame:
        data: dict[str, pd.Series] = {}
        for attr in self.fields:
            if attr.field_type is FieldType.TIME:
                data[attr.name] = pd.to_datetime(pd.Series(attr.values, dtype="object"), utc=True)
            else:
                data[attr.name] = pd.Series(attr.values, dtype=_PANDAS_DTYPES[attr.field_type])
        return pd.DataFrame(data, index=pd.RangeIndex(self.row_count))


def _json_cell(field_type: FieldType, value: Any) -> Any:
    if value is None:
        return None
    if field_type is FieldType.TIME:
        return format_rfc3339(value)
    if field_type is FieldType.JSON:
        return json.loads(value)
    if field_type is FieldType.FLOAT64 and not math.isfinite(value):
        return format_float(value)
    return value


def build_frame(
    name: str,
    rows: Sequence[SourceRow],
    datetime_attributes: Mapping[str, str] | None = None,
) -> Frame:
    """Materialize ``rows`` into a frame named ``name``.

    Parameters
    ----------
    name : str
        Frame name, usually the query's ref id.
    rows : list of SourceRow
        Items in result order.
    datetime_attributes : dict, optional
        Attribute name -> datetime format (layout, ``"1"`` or ``"2"``).

    Raises
    ------
    DecodeError
        When a value cannot be materialized; the message names the
        attribute and the row.
    """
    formats = dict(datetime_attributes or {})
    attributes: dict[str, Attribute] = {}

    for row_index, row in enumerate(rows):
        for attr_name, value in row.items():
            existing = attributes.get(attr_name)
            try:
                if existing is not None:
                    existing.append(value)
                else:
                    created = Attribute.create(row_index, attr_name, value, formats.get(attr_name, ""))
                    if created is not None:
                        attributes[attr_name] = created
            except DecodeError as exc:
                logger.error("Decode failed | field=%s | row=%d | error=%s", attr_name, row_index, exc)
                raise DecodeError(f"field {attr_name!r} at row {row_index}: {exc}") from exc

        for attr in attributes.values():
            if attr.size() != row_index + 1:
                attr.append_null()

    diagnostics = [d for attr in attributes.values() for d in attr.diagnostics]
    logger.info(
        "Frame built | name=%s | rows=%d | fields=%d | diagnostics=%d",
        name, len(rows), len(attributes), len(diagnostics),
    )
    return Frame(
        name=name,
        fields=list(attributes.values()),
        row_count=len(rows),
        diagnostics=diagnostics,
    )
