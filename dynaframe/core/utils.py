"""
Small shared utilities.
"""
from __future__ import annotations

import dataclasses
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


@dataclass(frozen=True)
class Diagnostic:
    """A structural event worth surfacing next to a result.

    ``kind`` is a short machine-readable code (``widened``,
    ``converted_to_string``, ``partial_result`` ...); ``detail`` carries the
    values a caller or test may want to assert on.
    """
    kind: str
    message: str
    field: str | None = None
    detail: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "detail": dict(self.detail),
        }
