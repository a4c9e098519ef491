"""
QuerySpec -- one PartiQL query request as sent by a dashboard panel.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DatetimeAttribute(BaseModel):
    """Attribute to materialize as a timestamp column."""

    name: str
    format: str = Field(
        ...,
        description="strptime layout (e.g. '%Y-%m-%dT%H:%M:%S%z'), '1' for unix seconds or '2' for unix milliseconds",
    )


class QuerySpec(BaseModel):
    """Parsed representation of one query request."""

    model_config = ConfigDict(populate_by_name=True)

    ref_id: str = Field("A", alias="refId", description="Caller-assigned reference id")
    query_text: str = Field("", alias="queryText", description="PartiQL statement")
    limit: int = Field(0, ge=0, description="Maximum rows to return (0 = no limit)")
    datetime_attributes: list[DatetimeAttribute] = Field(default_factory=list, alias="datetimeAttributes")
    sort_by: str = Field("", alias="sortBy", description="Explicit client-side sort field")
    sort_direction: str = Field("asc", alias="sortDirection", description="asc | desc")
    sort_key: str = Field("", alias="sortKey", description="Expected table/index sort key")
    scan_index_forward: bool | None = Field(
        None,
        alias="scanIndexForward",
        description="Native ordering direction (True = ascending); None disables native ordering",
    )

    @field_validator("sort_direction")
    @classmethod
    def _normalise_direction(cls, value: str) -> str:
        # anything other than "desc" sorts ascending
        return "desc" if (value or "").strip().lower() == "desc" else "asc"

    def datetime_formats(self) -> dict[str, str]:
        return {attr.name: attr.format for attr in self.datetime_attributes}
