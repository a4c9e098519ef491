"""
Upload service -- orchestrates preset lookup -> plan -> preview | execute.

Preview never touches DynamoDB.  Execute runs each planned statement in
order, stops at the first failure, aggregates consumed capacity per table and,
for select presets, returns the decoded rows.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from dynaframe.core.config import get_settings
from dynaframe.core.errors import DecodeError, DryRunDisabledError, RemoteCallError, ValidationError
from dynaframe.core.logging import get_logger
from dynaframe.core.utils import timer
from dynaframe.db.transport import DynamoTransport
from dynaframe.engine.attribute_value import SourceRow, to_python
from dynaframe.upload.presets import PresetStore, UploadOperation, UploadPreset
from dynaframe.upload.statements import UploadPlan, build_upload_plan, resolve_operation

logger = get_logger(__name__)


@dataclass
class CapacitySummary:
    table_name: str
    capacity_units: float = 0.0
    read_units: float = 0.0
    write_units: float = 0.0
    throttle_events: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "tableName": self.table_name,
            "capacityUnits": self.capacity_units,
            "readCapacityUnits": self.read_units,
            "writeCapacityUnits": self.write_units,
            "throttleEvents": self.throttle_events,
        }


@dataclass
class UploadReport:
    preset: dict[str, Any]
    item_count: int
    statements: list[str]
    payload_size_bytes: int
    estimated_capacity_units: float
    dry_run: bool = True
    consumed_capacity: list[CapacitySummary] = field(default_factory=list)
    results: list[dict[str, Any]] | None = None
    warnings: list[str] = field(default_factory=list)
    latency_ms: int = 0


def aggregate_consumed_capacity(entries: Iterable[dict[str, Any] | None]) -> list[CapacitySummary]:
    """Sum ``ConsumedCapacity`` entries per table.

    An entry that names a table but reports zero capacity units is counted as
    a throttle event.
    """
    summaries: dict[str, CapacitySummary] = {}
    for entry in entries:
        if not entry:
            continue
        table = entry.get("TableName", "")
        summary = summaries.setdefault(table, CapacitySummary(table_name=table))
        capacity = float(entry.get("CapacityUnits") or 0)
        summary.capacity_units += capacity
        summary.read_units += float(entry.get("ReadCapacityUnits") or 0)
        summary.write_units += float(entry.get("WriteCapacityUnits") or 0)
        if table and "CapacityUnits" in entry and capacity == 0:
            summary.throttle_events += 1
    return list(summaries.values())


def _prepare(
    preset_id: str,
    items: Sequence[Any],
    store: PresetStore,
    default_max_kb: int | None,
) -> tuple[UploadPreset, UploadPlan]:
    if not preset_id:
        raise ValidationError("presetId is required")
    if default_max_kb is None:
        default_max_kb = get_settings().max_upload_payload_kb
    preset = store.load_preset(preset_id)
    logger.info("Upload | preset=%s | operation=%s | items=%d", preset.id, preset.operation, len(items))
    return preset, build_upload_plan(preset, default_max_kb, items)


def _report(preset: UploadPreset, items: Sequence[Any], plan: UploadPlan, **extra: Any) -> UploadReport:
    return UploadReport(
        preset=preset.summarize(),
        item_count=len(items),
        statements=plan.previews,
        payload_size_bytes=plan.payload_size_bytes,
        estimated_capacity_units=float(len(plan.statements)),
        **extra,
    )


def preview_upload(
    preset_id: str,
    items: Sequence[Any],
    *,
    store: PresetStore,
    default_max_kb: int | None = None,
) -> UploadReport:
    """Build statements and return their previews without executing anything.

    Raises
    ------
    DryRunDisabledError
        The preset does not allow dry runs.
    """
    preset, plan = _prepare(preset_id, items, store, default_max_kb)
    if not preset.allow_dry_run:
        raise DryRunDisabledError(f"dry run is disabled for preset {preset.id!r}")
    return _report(preset, items, plan)


def execute_upload(
    preset_id: str,
    items: Sequence[Any],
    *,
    store: PresetStore,
    transport: DynamoTransport,
    dry_run: bool = False,
    default_max_kb: int | None = None,
) -> UploadReport:
    """Execute every planned statement (or preview them when ``dry_run``).

    Raises
    ------
    RemoteCallError
        A statement failed; the message names its 1-based position.
    """
    preset, plan = _prepare(preset_id, items, store, default_max_kb)
    if dry_run:
        if not preset.allow_dry_run:
            raise DryRunDisabledError(f"dry run is disabled for preset {preset.id!r}")
        return _report(preset, items, plan)

    operation = resolve_operation(preset)
    consumed: list[dict[str, Any] | None] = []
    rows: list[SourceRow] = []

    with timer() as elapsed:
        for position, statement in enumerate(plan.statements, start=1):
            try:
                page = transport.execute_statement(
                    statement.statement,
                    parameters=statement.parameters,
                    return_consumed_capacity=True,
                )
            except RemoteCallError as exc:
                logger.error("Upload statement failed | preset=%s | statement=%d | error=%s", preset.id, position, exc)
                raise RemoteCallError(f"failed to execute statement {position}: {exc}") from exc
            consumed.append(page.consumed_capacity)
            if operation is UploadOperation.SELECT:
                rows.extend(page.items)

    warnings: list[str] = []
    results: list[dict[str, Any]] | None = None
    if operation is UploadOperation.SELECT:
        try:
            results = [{name: to_python(value) for name, value in row.items()} for row in rows]
        except DecodeError as exc:
            logger.warning("Select results could not be decoded | preset=%s | error=%s", preset.id, exc)
            warnings.append(f"failed to decode select results: {exc}")

    logger.info(
        "Upload executed | preset=%s | statements=%d | latency_ms=%d",
        preset.id, len(plan.statements), elapsed["elapsed_ms"],
    )
    return _report(
        preset, items, plan,
        dry_run=False,
        consumed_capacity=aggregate_consumed_capacity(consumed),
        results=results,
        warnings=warnings,
        latency_ms=elapsed["elapsed_ms"],
    )
