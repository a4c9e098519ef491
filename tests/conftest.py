"""
Shared test doubles: an in-memory DynamoDB transport and a fake clock.
"""
from __future__ import annotations

from typing import Any

import pytest

from dynaframe.core.errors import RemoteCallError
from dynaframe.db.transport import KeySchema, StatementPage
from dynaframe.engine.attribute_value import SourceRow, parse_item


def paged(items: list[dict[str, Any]], page_size: int) -> list[list[dict[str, Any]]]:
    """Split wire items into pages of ``page_size``."""
    return [items[i:i + page_size] for i in range(0, len(items), page_size)] or [[]]


class FakeTransport:
    """In-memory ``DynamoTransport``.

    ``pages`` are lists of wire items; the continuation token is the index of
    the next page.  ``fail_on_page`` makes that page (0-based) raise.
    """

    def __init__(
        self,
        pages: list[list[dict[str, Any]]] | None = None,
        key_schemas: dict[tuple[str, str], KeySchema] | None = None,
        tables: list[list[str]] | None = None,
        attributes: dict[str, list[str]] | None = None,
        fail_on_page: int | None = None,
        fail_on_call: int | None = None,
        consumed_capacity: dict[str, Any] | None = None,
    ):
        self.pages = pages if pages is not None else [[]]
        self.key_schemas = key_schemas or {}
        self.tables = tables or [[]]
        self.attributes = attributes or {}
        self.fail_on_page = fail_on_page
        self.fail_on_call = fail_on_call
        self.consumed_capacity = consumed_capacity
        self.calls: list[dict[str, Any]] = []
        self.describe_calls: list[tuple[str, str]] = []

    def execute_statement(
        self,
        statement: str,
        limit: int | None = None,
        next_token: str | None = None,
        parameters: list[dict[str, Any]] | None = None,
        return_consumed_capacity: bool = False,
    ) -> StatementPage:
        self.calls.append({
            "statement": statement,
            "limit": limit,
            "next_token": next_token,
            "parameters": parameters,
        })
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RemoteCallError("ValidationException: statement rejected")

        index = int(next_token) if next_token else 0
        if self.fail_on_page is not None and index == self.fail_on_page:
            raise RemoteCallError("ProvisionedThroughputExceededException")

        items: list[SourceRow] = [parse_item(i) for i in self.pages[index]] if index < len(self.pages) else []
        token = str(index + 1) if index + 1 < len(self.pages) else None
        return StatementPage(
            items=items,
            next_token=token,
            consumed_capacity=self.consumed_capacity if return_consumed_capacity else None,
        )

    def describe_key_schema(self, table: str, index: str = "") -> KeySchema:
        self.describe_calls.append((table, index))
        try:
            return self.key_schemas[(table, index)]
        except KeyError:
            raise RemoteCallError(f"ResourceNotFoundException: {table}") from None

    def list_tables(self, page_token: str | None = None) -> tuple[list[str], str | None]:
        index = int(page_token) if page_token else 0
        token = str(index + 1) if index + 1 < len(self.tables) else None
        return list(self.tables[index]), token

    def describe_attributes(self, table: str) -> list[str]:
        if table not in self.attributes:
            raise RemoteCallError(f"ResourceNotFoundException: {table}")
        return list(self.attributes[table])


class FakeClock:
    """Monotonic clock that advances ``step`` seconds on every read."""

    def __init__(self, step: float = 0.0, start: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


class CountdownCancel:
    """Cancellation signal that trips after ``checks`` polls."""

    def __init__(self, checks: int):
        self.remaining = checks

    def is_set(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_clock():
    return FakeClock


@pytest.fixture
def make_cancel():
    return CountdownCancel


@pytest.fixture
def make_pages():
    return paged
