"""
FastAPI application entry-point.
"""
from __future__ import annotations

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dynaframe.api.routers import catalog, query, upload
from dynaframe.core.config import get_settings
from dynaframe.core.errors import RemoteCallError
from dynaframe.db.connection import get_transport
from dynaframe.db.transport import DynamoTransport

app = FastAPI(
    title="Dynaframe",
    version="0.1.0",
    description="DynamoDB PartiQL queries materialized as typed frames, plus preset-driven uploads",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query.router, prefix="/query", tags=["Query"])
app.include_router(upload.router, prefix="/upload", tags=["Upload"])
app.include_router(catalog.router, tags=["Catalog"])


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/health/dynamodb")
def health_dynamodb(transport: DynamoTransport = Depends(get_transport)):
    table = get_settings().connection_test_table
    if not table:
        return {"status": "error", "message": "connection test table is not configured"}
    try:
        transport.describe_key_schema(table)
    except RemoteCallError as exc:
        return {"status": "error", "message": str(exc)}
    return {"status": "ok", "message": "Successfully connected to DynamoDB"}


def run() -> None:
    """Serve the API on ``API_PORT`` (``dynaframe-api`` console script)."""
    settings = get_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.api_port, log_level=settings.log_level.lower())
