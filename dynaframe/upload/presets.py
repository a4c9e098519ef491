"""
Upload presets: named, schema-constrained recipes for turning JSON items into
PartiQL write statements.

Presets are loaded once (from a YAML/JSON file named by ``PRESETS_FILE``) and
are read-only at use time; the store hands out copies.
"""
from __future__ import annotations

import threading
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Protocol

import yaml
from pydantic import BaseModel, ConfigDict, Field

from dynaframe.core.config import get_settings
from dynaframe.core.errors import PresetNotFoundError, ValidationError
from dynaframe.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAYLOAD_FLOOR_KB = 512


class UploadOperation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SELECT = "select"


class UploadField(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str = ""
    required: bool = False
    description: str = ""
    default_value: Any = Field(None, alias="defaultValue")
    dynamo_type: str = Field("", alias="dynamoType")


class UploadPreset(BaseModel):
    """One preset as stored in configuration (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str = ""
    description: str = ""
    table: str = ""
    index: str = ""
    operation: str = UploadOperation.INSERT.value
    fields: list[UploadField] = Field(default_factory=list, alias="schema")
    partiql_template: str = Field("", alias="partiqlTemplate")
    allow_ad_hoc_fields: bool = Field(False, alias="allowAdHocFields")
    allow_dry_run: bool = Field(True, alias="allowDryRun")
    max_payload_kb: int = Field(0, alias="maxPayloadKB")
    response_preview: bool = Field(False, alias="responsePreview")
    help_text: str = Field("", alias="helpText")
    category: str = ""

    def effective_max_payload_kb(self, default_max_kb: int = 0) -> int:
        """Preset cap, else installation cap, else the 512 KB floor; never above the installation cap."""
        limit = self.max_payload_kb
        if limit <= 0 and default_max_kb > 0:
            limit = default_max_kb
        if limit <= 0:
            limit = DEFAULT_PAYLOAD_FLOOR_KB
        if default_max_kb > 0 and limit > default_max_kb:
            return default_max_kb
        return limit

    def summarize(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class PresetStore(Protocol):
    def load_preset(self, preset_id: str) -> UploadPreset: ...

    def list_presets(self) -> list[dict[str, Any]]: ...

    def save_preset(self, preset: UploadPreset) -> None: ...

    def delete_preset(self, preset_id: str) -> None: ...


class InMemoryPresetStore:
    """Thread-safe process-local preset store.

    Parameters
    ----------
    presets : iterable of UploadPreset
        Initial presets (later duplicates of an id replace earlier ones).
    default_max_kb : int
        Installation-wide payload cap applied to presets without their own.
    """

    def __init__(self, presets: Iterable[UploadPreset] = (), default_max_kb: int = 0):
        self._lock = threading.Lock()
        self._presets: dict[str, UploadPreset] = {}
        self._default_max_kb = default_max_kb
        for preset in presets:
            self._presets[preset.id] = preset.model_copy(deep=True)

    def load_preset(self, preset_id: str) -> UploadPreset:
        with self._lock:
            preset = self._presets.get(preset_id)
            if preset is None:
                raise PresetNotFoundError(f"preset {preset_id!r} not found")
            clone = preset.model_copy(deep=True)
        if clone.max_payload_kb <= 0 and self._default_max_kb > 0:
            clone.max_payload_kb = self._default_max_kb
        return clone

    def list_presets(self) -> list[dict[str, Any]]:
        with self._lock:
            return [preset.summarize() for preset in self._presets.values()]

    def save_preset(self, preset: UploadPreset) -> None:
        if not preset.id:
            raise ValidationError("preset id is required")
        if not preset.name:
            raise ValidationError("preset name is required")
        if not preset.table:
            raise ValidationError("preset table is required")
        with self._lock:
            self._presets[preset.id] = preset.model_copy(deep=True)
        logger.info("Preset saved | id=%s | table=%s | operation=%s", preset.id, preset.table, preset.operation)

    def delete_preset(self, preset_id: str) -> None:
        with self._lock:
            if preset_id not in self._presets:
                raise PresetNotFoundError(f"preset {preset_id!r} not found")
            del self._presets[preset_id]
        logger.info("Preset deleted | id=%s", preset_id)


# ── Loading ──────────────────────────────────────────────


def load_presets_file(path: str | Path) -> list[UploadPreset]:
    """Parse a presets file (YAML or JSON).

    Accepts either a top-level list of presets or a mapping with an
    ``uploadPresets`` / ``presets`` list.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get("uploadPresets", raw.get("presets", []))
    if not isinstance(raw, list):
        raise ValidationError(f"{path}: expected a list of upload presets")

    presets = [UploadPreset.model_validate(entry) for entry in raw]
    logger.info("Loaded %d upload presets from %s", len(presets), path)
    return presets


@lru_cache
def get_preset_store() -> InMemoryPresetStore:
    """Shared preset store built from settings (FastAPI dependency)."""
    settings = get_settings()
    presets = load_presets_file(settings.presets_file) if settings.presets_file else []
    return InMemoryPresetStore(presets, default_max_kb=settings.max_upload_payload_kb)
