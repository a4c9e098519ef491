"""POST /query -- run one or more PartiQL queries and return typed frames keyed by refId."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from dynaframe.core.errors import DynaframeError, QueryAbortedError, RemoteCallError, ValidationError
from dynaframe.core.logging import get_logger
from dynaframe.db.connection import get_transport
from dynaframe.db.transport import DynamoTransport
from dynaframe.query.service import run_query
from dynaframe.query.spec import QuerySpec

logger = get_logger(__name__)
router = APIRouter()



class QueryRequest(BaseModel):
    queries: list[QuerySpec] = Field(..., min_length=1)


class QueryError(BaseModel):
    kind: str = Field(..., description="bad_request | internal")
    message: str


class QueryMeta(BaseModel):
    executed_statement: str
    native_sort_applied: bool
    sort_field: str | None = None
    stop_reason: str
    partial: bool
    pages: int
    latency_ms: int
    diagnostics: list[dict[str, Any]]


class QueryResponseItem(BaseModel):
    frame: dict[str, Any] | None = None
    meta: QueryMeta | None = None
    error: QueryError | None = None


class QueryResponse(BaseModel):
    results: dict[str, QueryResponseItem]



def _run_one(spec: QuerySpec, transport: DynamoTransport) -> QueryResponseItem:
    try:
        result = run_query(spec, transport)
    except (ValidationError, QueryAbortedError, RemoteCallError) as exc:
        logger.warning("Query rejected | ref_id=%s | error=%s", spec.ref_id, exc)
        return QueryResponseItem(error=QueryError(kind="bad_request", message=str(exc)))
    except DynaframeError as exc:
        logger.error("Query failed | ref_id=%s | error=%s", spec.ref_id, exc)
        return QueryResponseItem(error=QueryError(kind="internal", message=str(exc)))

    return QueryResponseItem(
        frame=result.frame.to_dict(),
        meta=QueryMeta(
            executed_statement=result.statement,
            native_sort_applied=result.native_sort_applied,
            sort_field=result.client_sort.field if result.client_sort else None,
            stop_reason=result.stop_reason.value,
            partial=result.partial,
            pages=result.pages,
            latency_ms=result.latency_ms,
            diagnostics=[d.to_dict() for d in result.diagnostics],
        ),
    )


@router.post("", response_model=QueryResponse)
def query_endpoint(req: QueryRequest, transport: DynamoTransport = Depends(get_transport)):
    """Each query succeeds or fails on its own; one bad query never fails the batch."""
    return QueryResponse(results={spec.ref_id: _run_one(spec, transport) for spec in req.queries})
