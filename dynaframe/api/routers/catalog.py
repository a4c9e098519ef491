"""
GET /tables, GET /tables/{table}/attributes -- metadata for the query editor.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from dynaframe.core.errors import RemoteCallError
from dynaframe.core.logging import get_logger
from dynaframe.db.connection import get_transport
from dynaframe.db.transport import DynamoTransport, list_all_tables

logger = get_logger(__name__)
router = APIRouter()


@router.get("/tables")
def list_tables(transport: DynamoTransport = Depends(get_transport)) -> dict:
    """Return every table name visible to the configured credentials."""
    try:
        return {"tables": list_all_tables(transport)}
    except RemoteCallError as exc:
        logger.error("List tables failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/tables/{table}/attributes")
def list_attributes(table: str, transport: DynamoTransport = Depends(get_transport)) -> dict:
    """Return key attributes plus names sampled from a few items."""
    try:
        return {"table": table, "attributes": transport.describe_attributes(table)}
    except RemoteCallError as exc:
        logger.error("Describe attributes failed | table=%s | error=%s", table, exc)
        raise HTTPException(status_code=500, detail=str(exc))
