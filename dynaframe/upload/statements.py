"""
Upload statement builder.

Turns JSON items plus an ``UploadPreset`` into parameterised PartiQL
statements, one per item:

  insert  INSERT INTO "T" VALUE {'a': ?, 'b': ?}
  update  UPDATE "T" SET "f"=? WHERE "PK"=? AND "SK"=?
  delete  DELETE FROM "T" WHERE "PK"=? AND "SK"=?
  select  SELECT * FROM "T" [WHERE ...]

Update, delete and select use the preset's ``partiqlTemplate`` instead when
one is configured.  Every statement carries a display-only preview with the
placeholders replaced by literals.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

from dynaframe.core.errors import ValidationError
from dynaframe.core.logging import get_logger
from dynaframe.partiql.planner import quote_identifier
from dynaframe.upload.coercion import serialize, to_attribute_value, trim_trailing_zeros
from dynaframe.upload.presets import UploadOperation, UploadPreset

logger = get_logger(__name__)

CONVENTIONAL_KEY_FIELDS = ("PK", "SK")

_PREVIEW_MAX_CHARS = 50


@dataclass
class UploadStatement:
    statement: str
    parameters: list[dict[str, Any]] = field(default_factory=list)
    preview: str = ""


@dataclass
class UploadPlan:
    preset: UploadPreset
    statements: list[UploadStatement]
    payload_size_bytes: int
    max_payload_kb: int

    @property
    def previews(self) -> list[str]:
        return [s.preview for s in self.statements]


# ── Previews ─────────────────────────────────────────────


def _cap(text: str) -> str:
    if len(text) > _PREVIEW_MAX_CHARS:
        return text[:_PREVIEW_MAX_CHARS - 3] + "..."
    return text


def format_preview_value(value: Any) -> str:
    """Literal rendering of one parameter for previews (never executed)."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return "'" + _cap(value.replace("'", "\\'")) + "'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return trim_trailing_zeros(value)
    if isinstance(value, (int, Decimal)):
        return str(value)
    return _cap(json.dumps(value, separators=(",", ":"), sort_keys=True, default=str))


def _placeholder_offsets(template: str) -> list[int]:
    """Offsets of ``?`` placeholders outside quoted literals and identifiers."""
    offsets: list[int] = []
    quote: str | None = None
    for i, ch in enumerate(template):
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "?":
            offsets.append(i)
    return offsets


def count_placeholders(template: str) -> int:
    return len(_placeholder_offsets(template))


def render_preview(template: str, values: Sequence[Any]) -> str:
    parts: list[str] = []
    last = 0
    for offset, value in zip(_placeholder_offsets(template), values):
        parts.append(template[last:offset])
        parts.append(format_preview_value(value))
        last = offset + 1
    parts.append(template[last:])
    return "".join(parts)


# ── Validation & sizing ──────────────────────────────────


def validate_item_against_preset(preset: UploadPreset, item: dict[str, Any]) -> None:
    if not preset.fields:
        return
    allowed = {f.name for f in preset.fields if f.name}
    for f in preset.fields:
        if f.name and f.required and f.name not in item:
            raise ValidationError(f"required field {f.name!r} missing")
    if not preset.allow_ad_hoc_fields:
        for key in item:
            if key not in allowed:
                raise ValidationError(f"field {key!r} is not allowed for preset {preset.id!r}")


def payload_size(item: dict[str, Any]) -> int:
    """UTF-8 byte length of the item's compact JSON encoding."""
    try:
        encoded = json.dumps(item, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"failed to encode payload: {exc}") from exc
    return len(encoded.encode("utf-8"))


# ── Statement builders ───────────────────────────────────


def _literal_name(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


def _encode(name: str, value: Any) -> dict[str, Any]:
    try:
        return serialize(value)
    except ValidationError as exc:
        raise ValidationError(f"failed to encode field {name!r}: {exc}") from exc


def _equality_clause(names: Sequence[str]) -> str:
    return " AND ".join(f"{quote_identifier(n)}=?" for n in names)


def _build_templated(preset: UploadPreset, item: dict[str, Any]) -> UploadStatement:
    template = preset.partiql_template.strip()
    if not preset.fields:
        raise ValidationError("schema definition is required to build statement parameters")

    parameters: list[dict[str, Any]] = []
    values: list[Any] = []
    for f in preset.fields:
        if f.name not in item:
            if f.required:
                raise ValidationError(f"required field {f.name!r} missing")
            parameters.append({"NULL": True})
            values.append(None)
            continue
        try:
            parameters.append(to_attribute_value(f, item[f.name]))
        except ValidationError as exc:
            raise ValidationError(f"field {f.name!r}: {exc}") from exc
        values.append(item[f.name])

    expected = count_placeholders(template)
    if expected != len(parameters):
        raise ValidationError(
            f"partiqlTemplate expects {expected} parameters but the schema supplies {len(parameters)}"
        )
    return UploadStatement(template, parameters, render_preview(template, values))


def _build_insert(preset: UploadPreset, item: dict[str, Any]) -> UploadStatement:
    if not item:
        raise ValidationError("payload is empty")
    keys = sorted(item)
    template = (
        f"INSERT INTO {quote_identifier(preset.table)} VALUE {{"
        + ", ".join(f"{_literal_name(k)}: ?" for k in keys)
        + "}"
    )
    parameters = [_encode(k, item[k]) for k in keys]
    return UploadStatement(template, parameters, render_preview(template, [item[k] for k in keys]))


def _build_update(preset: UploadPreset, item: dict[str, Any]) -> UploadStatement:
    if preset.partiql_template.strip():
        return _build_templated(preset, item)
    if not item:
        raise ValidationError("payload is empty")

    required = {f.name for f in preset.fields if f.required}
    key_names = sorted(k for k in item if k in required or k in CONVENTIONAL_KEY_FIELDS)
    update_names = sorted(k for k in item if k not in key_names)
    if not key_names:
        raise ValidationError("no key fields found for UPDATE (PK/SK or required schema fields)")
    if not update_names:
        raise ValidationError("no fields to update")

    set_clause = ", ".join(f"{quote_identifier(n)}=?" for n in update_names)
    template = (
        f"UPDATE {quote_identifier(preset.table)} SET {set_clause} "
        f"WHERE {_equality_clause(key_names)}"
    )
    ordered = update_names + key_names
    parameters = [_encode(n, item[n]) for n in ordered]
    return UploadStatement(template, parameters, render_preview(template, [item[n] for n in ordered]))


def _build_delete(preset: UploadPreset, item: dict[str, Any]) -> UploadStatement:
    if preset.partiql_template.strip():
        return _build_templated(preset, item)
    if not item:
        raise ValidationError("payload is empty")
    names = sorted(item)
    template = f"DELETE FROM {quote_identifier(preset.table)} WHERE {_equality_clause(names)}"
    parameters = [_encode(n, item[n]) for n in names]
    return UploadStatement(template, parameters, render_preview(template, [item[n] for n in names]))


def _build_select(preset: UploadPreset, item: dict[str, Any]) -> UploadStatement:
    if preset.partiql_template.strip():
        return _build_templated(preset, item)
    template = f"SELECT * FROM {quote_identifier(preset.table)}"
    names = sorted(item)
    if names:
        template += f" WHERE {_equality_clause(names)}"
    parameters = [_encode(n, item[n]) for n in names]
    return UploadStatement(template, parameters, render_preview(template, [item[n] for n in names]))


_BUILDERS = {
    UploadOperation.INSERT: _build_insert,
    UploadOperation.UPDATE: _build_update,
    UploadOperation.DELETE: _build_delete,
    UploadOperation.SELECT: _build_select,
}


def resolve_operation(preset: UploadPreset) -> UploadOperation:
    try:
        return UploadOperation((preset.operation or "").strip().lower())
    except ValueError:
        raise ValidationError(f"operation {preset.operation!r} not supported") from None


def build_statement_for_item(preset: UploadPreset, item: dict[str, Any]) -> UploadStatement:
    return _BUILDERS[resolve_operation(preset)](preset, item)


def build_upload_plan(
    preset: UploadPreset,
    default_max_kb: int,
    items: Sequence[Any],
) -> UploadPlan:
    """Validate, size and build one statement per item.

    Raises
    ------
    ValidationError
        Missing preset id/table, no items, a non-object item, a schema
        violation, the running payload total exceeding the effective cap,
        or a statement that cannot be built.  Messages name the 1-based
        item position.
    """
    if not preset.id:
        raise ValidationError("preset id is required")
    if not preset.table:
        raise ValidationError(f"preset {preset.id!r} is missing a table name")
    if not items:
        raise ValidationError("at least one item is required")
    resolve_operation(preset)

    max_kb = preset.effective_max_payload_kb(default_max_kb)
    max_bytes = max_kb * 1024
    total = 0
    statements: list[UploadStatement] = []

    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"item {position} must be a JSON object")
        try:
            validate_item_against_preset(preset, item)
            total += payload_size(item)
            if total > max_bytes:
                raise ValidationError(
                    f"payload exceeds maximum size of {max_kb} KB "
                    f"(running total {math.ceil(total / 1024)} KB)"
                )
            statements.append(build_statement_for_item(preset, item))
        except ValidationError as exc:
            logger.warning("Upload item rejected | preset=%s | item=%d | error=%s", preset.id, position, exc)
            raise ValidationError(f"item {position}: {exc}") from exc

    logger.info(
        "Upload plan built | preset=%s | operation=%s | statements=%d | payload_bytes=%d",
        preset.id, preset.operation, len(statements), total,
    )
    return UploadPlan(preset=preset, statements=statements, payload_size_bytes=total, max_payload_kb=max_kb)
