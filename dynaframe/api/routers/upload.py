"""
GET /upload/presets, GET /upload/schema, POST /upload/preview, POST /upload/execute.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from dynaframe.core.errors import DryRunDisabledError, PresetNotFoundError, RemoteCallError, ValidationError
from dynaframe.core.logging import get_logger
from dynaframe.db.connection import get_transport
from dynaframe.db.transport import DynamoTransport
from dynaframe.upload.presets import PresetStore, get_preset_store
from dynaframe.upload.service import UploadReport, execute_upload, preview_upload

logger = get_logger(__name__)
router = APIRouter()



class UploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preset_id: str = Field("", alias="presetId")
    items: list[Any] = Field(default_factory=list)
    dry_run: bool = Field(False, alias="dryRun")


class UploadResponse(BaseModel):
    preset: dict[str, Any]
    item_count: int
    statements: list[str]
    payload_size_bytes: int
    estimated_capacity_units: float
    dry_run: bool
    consumed_capacity: list[dict[str, Any]] = Field(default_factory=list)
    results: list[dict[str, Any]] | None = None
    warnings: list[str] = Field(default_factory=list)
    latency_ms: int = 0



def _to_response(report: UploadReport) -> UploadResponse:
    return UploadResponse(
        preset=report.preset,
        item_count=report.item_count,
        statements=report.statements,
        payload_size_bytes=report.payload_size_bytes,
        estimated_capacity_units=report.estimated_capacity_units,
        dry_run=report.dry_run,
        consumed_capacity=[c.to_dict() for c in report.consumed_capacity],
        results=report.results,
        warnings=report.warnings,
        latency_ms=report.latency_ms,
    )


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, PresetNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DryRunDisabledError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


@router.get("/presets")
def list_presets(store: PresetStore = Depends(get_preset_store)) -> dict:
    """Return every configured preset summary."""
    return {"presets": store.list_presets()}


@router.get("/schema")
def preset_schema(
    preset_id: str = Query("", alias="presetId"),
    store: PresetStore = Depends(get_preset_store),
) -> dict:
    """Return one preset (schema, template, limits) for the upload form."""
    if not preset_id:
        raise HTTPException(status_code=400, detail="presetId is required")
    try:
        preset = store.load_preset(preset_id)
    except ValidationError as exc:
        raise _http_error(exc)
    return {"preset": preset.summarize()}


@router.post("/preview", response_model=UploadResponse)
def preview_endpoint(req: UploadRequest, store: PresetStore = Depends(get_preset_store)):
    """Build statements and return previews; nothing is executed."""
    try:
        report = preview_upload(req.preset_id, req.items, store=store)
    except ValidationError as exc:
        raise _http_error(exc)
    return _to_response(report)


@router.post("/execute", response_model=UploadResponse)
def execute_endpoint(
    req: UploadRequest,
    store: PresetStore = Depends(get_preset_store),
    transport: DynamoTransport = Depends(get_transport),
):
    """Execute the planned statements (or preview them when dryRun is set)."""
    try:
        report = execute_upload(req.preset_id, req.items, store=store, transport=transport, dry_run=req.dry_run)
    except (ValidationError, RemoteCallError) as exc:
        logger.warning("Upload failed | preset=%s | error=%s", req.preset_id, exc)
        raise _http_error(exc)
    return _to_response(report)
