"""
Query service -- orchestrates plan -> collect -> sort -> trim -> materialize.

  1. Optionally push ORDER BY down to DynamoDB (native ordering)
  2. Collect every page under the pagination guards
  3. Sort client side when native ordering was not achieved
  4. Trim to the caller's row limit
  5. Build the typed frame
"""
from __future__ import annotations

import time
from typing import Callable

from dynaframe.core.errors import ValidationError
from dynaframe.core.logging import get_logger
from dynaframe.core.utils import Diagnostic, timer
from dynaframe.db.collector import CancelSignal, CollectLimits, StopReason, collect_items, trim_to_limit
from dynaframe.db.transport import DynamoTransport
from dynaframe.engine.frame import Frame, build_frame
from dynaframe.partiql.planner import plan_native_order
from dynaframe.partiql.sorter import ClientSort, resolve_sort_field, sort_items
from dynaframe.query.spec import QuerySpec

logger = get_logger(__name__)


class QueryResult:
    def __init__(
        self,
        spec: QuerySpec,
        frame: Frame,
        statement: str,
        native_sort_applied: bool = False,
        client_sort: ClientSort | None = None,
        stop_reason: StopReason = StopReason.EXHAUSTED,
        pages: int = 0,
        latency_ms: int = 0,
        diagnostics: list[Diagnostic] | None = None,
    ):
        self.spec = spec
        self.frame = frame
        self.statement = statement
        self.native_sort_applied = native_sort_applied
        self.client_sort = client_sort
        self.stop_reason = stop_reason
        self.pages = pages
        self.latency_ms = latency_ms
        self.diagnostics = diagnostics or []

    @property
    def partial(self) -> bool:
        return self.stop_reason.partial


def run_query(
    spec: QuerySpec,
    transport: DynamoTransport,
    *,
    limits: CollectLimits | None = None,
    cancel: CancelSignal | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> QueryResult:
    """Execute one query end to end and return its frame.

    Raises
    ------
    ValidationError
        Empty statement.
    QueryAbortedError, RemoteCallError
        Collection failed before any row arrived.
    DecodeError
        A value could not be materialized.
    """
    if not spec.query_text.strip():
        raise ValidationError("query text cannot be empty")

    with timer() as elapsed:
        logger.info(
            "Query | ref_id=%s | limit=%s | scan_index_forward=%s | sort_by=%s",
            spec.ref_id, spec.limit, spec.scan_index_forward, spec.sort_by or "-",
        )
        diagnostics: list[Diagnostic] = []
        statement = spec.query_text
        native_applied = False
        fallback_field = ""

        # 1. Native ordering
        if spec.scan_index_forward is not None:
            plan = plan_native_order(
                statement,
                ascending=spec.scan_index_forward,
                requested_sort_key=spec.sort_key.strip(),
                describe_key_schema=transport.describe_key_schema,
            )
            statement = plan.statement
            native_applied = plan.native_applied
            fallback_field = plan.fallback_field
            diagnostics.extend(plan.diagnostics)

        # 2. Collect
        collected = collect_items(
            transport, statement, spec.limit or None,
            limits=limits, cancel=cancel, clock=clock,
        )
        items = collected.items
        diagnostics.extend(collected.diagnostics)

        # 3. Client-side sort
        client_sort = resolve_sort_field(
            items,
            sort_by=spec.sort_by,
            sort_direction=spec.sort_direction,
            scan_index_forward=spec.scan_index_forward,
            native_applied=native_applied,
            fallback_field=fallback_field,
        )
        if client_sort is not None:
            sort_items(items, client_sort.field, client_sort.direction)
            diagnostics.append(Diagnostic(
                kind="client_sort",
                message=f"sorted {len(items)} items client side",
                field=client_sort.field,
                detail={"direction": client_sort.direction, "source": client_sort.source},
            ))

        # 4. Trim
        trimmed = trim_to_limit(items, spec.limit)
        if len(trimmed) < len(items):
            diagnostics.append(Diagnostic(
                kind="trimmed",
                message=f"trimmed {len(items)} items to limit {spec.limit}",
                detail={"before": len(items), "after": len(trimmed)},
            ))

        # 5. Materialize
        frame = build_frame(spec.ref_id, trimmed, spec.datetime_formats())
        diagnostics.extend(frame.diagnostics)

    logger.info(
        "Query done | ref_id=%s | rows=%d | pages=%d | stop=%s | latency_ms=%d",
        spec.ref_id, frame.row_count, collected.pages, collected.stop_reason.value, elapsed["elapsed_ms"],
    )
    return QueryResult(
        spec=spec,
        frame=frame,
        statement=statement,
        native_sort_applied=native_applied,
        client_sort=client_sort,
        stop_reason=collected.stop_reason,
        pages=collected.pages,
        latency_ms=elapsed["elapsed_ms"],
        diagnostics=diagnostics,
    )
