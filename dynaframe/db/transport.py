"""
Remote store transport.

``DynamoTransport`` is the narrow contract the engine needs from DynamoDB:
execute one PartiQL page, describe a key schema, list tables and sample a
table's attribute names.  ``BotoTransport`` implements it over a boto3
low-level client; tests substitute an in-memory fake.

Every botocore failure is re-raised as ``RemoteCallError``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from dynaframe.core.errors import RemoteCallError
from dynaframe.core.logging import get_logger
from dynaframe.engine.attribute_value import SourceRow, parse_item

logger = get_logger(__name__)

_LIST_TABLES_PAGE_SIZE = 100
_ATTRIBUTE_SAMPLE_SIZE = 5


@dataclass(frozen=True)
class KeySchema:
    partition_key: str
    sort_key: str = ""


@dataclass
class StatementPage:
    items: list[SourceRow] = field(default_factory=list)
    next_token: str | None = None
    consumed_capacity: dict[str, Any] | None = None


class DynamoTransport(Protocol):
    def execute_statement(
        self,
        statement: str,
        limit: int | None = None,
        next_token: str | None = None,
        parameters: list[dict[str, Any]] | None = None,
        return_consumed_capacity: bool = False,
    ) -> StatementPage: ...

    def describe_key_schema(self, table: str, index: str = "") -> KeySchema: ...

    def list_tables(self, page_token: str | None = None) -> tuple[list[str], str | None]: ...

    def describe_attributes(self, table: str) -> list[str]: ...


def _key_schema_from(elements: list[dict[str, str]]) -> KeySchema:
    partition_key, sort_key = "", ""
    for element in elements:
        if element.get("KeyType") == "HASH":
            partition_key = element.get("AttributeName", "")
        elif element.get("KeyType") == "RANGE":
            sort_key = element.get("AttributeName", "")
    return KeySchema(partition_key=partition_key, sort_key=sort_key)


class BotoTransport:
    """``DynamoTransport`` over a boto3 ``dynamodb`` client."""

    def __init__(self, client: Any):
        self._client = client

    def execute_statement(
        self,
        statement: str,
        limit: int | None = None,
        next_token: str | None = None,
        parameters: list[dict[str, Any]] | None = None,
        return_consumed_capacity: bool = False,
    ) -> StatementPage:
        request: dict[str, Any] = {"Statement": statement}
        if limit:
            request["Limit"] = int(limit)
        if next_token:
            request["NextToken"] = next_token
        if parameters:
            request["Parameters"] = parameters
        if return_consumed_capacity:
            request["ReturnConsumedCapacity"] = "TOTAL"

        try:
            output = self._client.execute_statement(**request)
        except (ClientError, BotoCoreError) as exc:
            raise RemoteCallError(f"execute statement failed: {exc}") from exc

        return StatementPage(
            items=[parse_item(item) for item in output.get("Items", [])],
            next_token=output.get("NextToken") or None,
            consumed_capacity=output.get("ConsumedCapacity"),
        )

    def _describe_table(self, table: str) -> dict[str, Any]:
        try:
            return self._client.describe_table(TableName=table)["Table"]
        except (ClientError, BotoCoreError) as exc:
            raise RemoteCallError(f"describe table {table!r} failed: {exc}") from exc

    def describe_key_schema(self, table: str, index: str = "") -> KeySchema:
        description = self._describe_table(table)
        if not index:
            return _key_schema_from(description.get("KeySchema", []))

        candidates = (
            description.get("GlobalSecondaryIndexes", [])
            + description.get("LocalSecondaryIndexes", [])
        )
        for candidate in candidates:
            if candidate.get("IndexName", "").lower() == index.lower():
                return _key_schema_from(candidate.get("KeySchema", []))
        raise RemoteCallError(f"index {index!r} not found on table {table!r}")

    def list_tables(self, page_token: str | None = None) -> tuple[list[str], str | None]:
        request: dict[str, Any] = {"Limit": _LIST_TABLES_PAGE_SIZE}
        if page_token:
            request["ExclusiveStartTableName"] = page_token
        try:
            output = self._client.list_tables(**request)
        except (ClientError, BotoCoreError) as exc:
            raise RemoteCallError(f"list tables failed: {exc}") from exc
        return list(output.get("TableNames", [])), output.get("LastEvaluatedTableName") or None

    def describe_attributes(self, table: str) -> list[str]:
        """Key attributes, declared attribute definitions, then names seen in a small scan sample."""
        description = self._describe_table(table)
        seen: dict[str, None] = {}
        for element in description.get("KeySchema", []):
            seen.setdefault(element["AttributeName"], None)
        for definition in description.get("AttributeDefinitions", []):
            seen.setdefault(definition["AttributeName"], None)

        try:
            sample = self._client.scan(TableName=table, Limit=_ATTRIBUTE_SAMPLE_SIZE)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Attribute sample scan failed, returning key attributes only | table=%s | error=%s", table, exc)
            return list(seen)
        for item in sample.get("Items", []):
            for name in item:
                seen.setdefault(name, None)
        return list(seen)


def list_all_tables(transport: DynamoTransport) -> list[str]:
    """Follow ``list_tables`` pagination to the end."""
    tables: list[str] = []
    token: str | None = None
    while True:
        names, token = transport.list_tables(token)
        tables.extend(names)
        if not token:
            return tables
