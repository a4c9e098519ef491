"""
Exception hierarchy shared by the query and upload pipelines.

The API layer maps these onto response classifications:
validation / aborted / remote failures are caller-facing ("bad_request"),
decode failures and anything unexpected are "internal".
"""
from __future__ import annotations


class DynaframeError(Exception):
    """Base class for all engine errors."""


class ValidationError(DynaframeError):
    """Caller-correctable input problem (statement, preset, payload)."""


class PresetNotFoundError(ValidationError):
    """No preset with the requested id exists."""


class DryRunDisabledError(ValidationError):
    """A preview was requested for a preset that disallows dry runs."""


class DecodeError(DynaframeError):
    """A source value could not be materialized into its column."""


class RemoteCallError(DynaframeError):
    """The remote store rejected or failed a call."""


class QueryAbortedError(DynaframeError):
    """Pagination stopped on a guard before any row was collected."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
