"""
Paginated PartiQL collector.

``collect_items`` drives ``execute_statement`` page by page, following
``NextToken`` until the result is exhausted or a guard fires:
  1. cancellation signal set
  2. wall-clock budget spent
  3. page ceiling reached
  4. a page fetch failed
  5. item ceiling reached
  6. caller row limit reached

Guards 1-4 return whatever was collected so far; with nothing collected they
raise instead.  Automatic retries are never attempted.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from dynaframe.core.config import Settings, get_settings
from dynaframe.core.errors import QueryAbortedError, RemoteCallError
from dynaframe.core.logging import get_logger
from dynaframe.core.utils import Diagnostic
from dynaframe.db.transport import DynamoTransport
from dynaframe.engine.attribute_value import SourceRow

logger = get_logger(__name__)


class StopReason(str, Enum):
    EXHAUSTED = "exhausted"
    LIMIT_REACHED = "limit_reached"
    ITEM_CAP = "item_cap"
    PAGE_CAP = "page_cap"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    FETCH_ERROR = "fetch_error"

    @property
    def partial(self) -> bool:
        return self not in (StopReason.EXHAUSTED, StopReason.LIMIT_REACHED)


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class CollectLimits:
    max_pages: int = 1000
    max_items: int = 1_000_000
    max_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CollectLimits":
        settings = settings or get_settings()
        return cls(
            max_pages=settings.max_pages,
            max_items=settings.max_items,
            max_seconds=settings.max_query_seconds,
        )


@dataclass
class CollectResult:
    items: list[SourceRow]
    pages: int
    stop_reason: StopReason
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.stop_reason.partial


def collect_items(
    transport: DynamoTransport,
    statement: str,
    limit: int | None = None,
    *,
    limits: CollectLimits | None = None,
    cancel: CancelSignal | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> CollectResult:
    """Fetch every page of ``statement`` within the configured guards.

    Raises
    ------
    QueryAbortedError
        Cancellation, timeout or page ceiling hit before any row arrived.
    RemoteCallError
        The first page fetch failed.
    """
    limits = limits or CollectLimits.from_settings()
    items: list[SourceRow] = []
    diagnostics: list[Diagnostic] = []
    pages = 0
    next_token: str | None = None
    started = clock()

    def _stop_early(reason: StopReason, message: str, error: Exception | None = None) -> CollectResult:
        if not items:
            logger.error("Query aborted with no rows | reason=%s | %s", reason.value, message)
            if reason is StopReason.FETCH_ERROR:
                raise RemoteCallError(message) from error
            raise QueryAbortedError(reason.value, message)
        logger.warning(
            "Returning partial results | reason=%s | items=%d | pages=%d | %s",
            reason.value, len(items), pages, message,
        )
        diagnostics.append(Diagnostic(
            kind="partial_result",
            message=message,
            detail={"reason": reason.value, "items": len(items), "pages": pages},
        ))
        return CollectResult(items, pages, reason, diagnostics)

    while True:
        if cancel is not None and cancel.is_set():
            return _stop_early(StopReason.CANCELLED, "query cancelled")

        if clock() - started > limits.max_seconds:
            return _stop_early(
                StopReason.TIMEOUT,
                f"query exceeded maximum duration of {limits.max_seconds:g}s",
            )

        if pages >= limits.max_pages:
            return _stop_early(
                StopReason.PAGE_CAP,
                f"query exceeded maximum page count of {limits.max_pages}",
            )

        try:
            page = transport.execute_statement(statement, limit=limit, next_token=next_token)
        except RemoteCallError as exc:
            logger.error("Page fetch failed | page=%d | error=%s", pages + 1, exc)
            return _stop_early(StopReason.FETCH_ERROR, f"page {pages + 1} fetch failed: {exc}", exc)

        pages += 1
        items.extend(page.items)
        logger.debug("Fetched page | page=%d | items=%d | total=%d", pages, len(page.items), len(items))

        if len(items) >= limits.max_items:
            logger.warning("Item ceiling reached | max_items=%d | items=%d", limits.max_items, len(items))
            diagnostics.append(Diagnostic(
                kind="partial_result",
                message=f"result reached the maximum of {limits.max_items} items",
                detail={"reason": StopReason.ITEM_CAP.value, "items": len(items), "pages": pages},
            ))
            return CollectResult(items, pages, StopReason.ITEM_CAP, diagnostics)

        if limit and len(items) >= limit:
            return CollectResult(items, pages, StopReason.LIMIT_REACHED, diagnostics)

        if not page.next_token:
            return CollectResult(items, pages, StopReason.EXHAUSTED, diagnostics)

        next_token = page.next_token


def trim_to_limit(items: list[SourceRow], limit: int | None) -> list[SourceRow]:
    """Keep the first ``limit`` rows (no-op without a positive limit)."""
    if limit and limit > 0 and len(items) > limit:
        logger.info("Trimming results to limit | before=%d | after=%d", len(items), limit)
        return items[:limit]
    return items
