"""
Native ordering planner for PartiQL SELECT statements.

DynamoDB only honours ``ORDER BY`` on the sort key of the queried table or
index, and only when the statement pins the partition key with ``=``.  This
module decides whether a statement qualifies and, when it does, rewrites it:

    SELECT * FROM "T" WHERE "pk" = 'x'
        -> SELECT * FROM "T" WHERE "pk" = 'x' ORDER BY "sk" ASC

When it does not qualify the statement is returned untouched together with a
fallback field for client-side sorting.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from dynaframe.core.errors import DynaframeError
from dynaframe.core.logging import get_logger
from dynaframe.core.utils import Diagnostic
from dynaframe.db.transport import KeySchema

logger = get_logger(__name__)

# ── Compiled patterns ────────────────────────────────────

# Source clause patterns, tried in priority order (first match wins)
_FROM_PATTERNS = (
    re.compile(r'FROM\s+"([^"]+)"\s+INDEX\s+"([^"]+)"', re.IGNORECASE),
    re.compile(r'FROM\s+"([^"]+)"', re.IGNORECASE),
    re.compile(r'FROM\s+([^\s"]+)\s+INDEX\s+([^\s"]+)', re.IGNORECASE),
    re.compile(r'FROM\s+([^\s";]+)', re.IGNORECASE),
)

_KEY_OPERATORS = r"(=|IN|BETWEEN|<>|!=|<=|>=|<|>)"


@dataclass
class OrderPlan:
    statement: str
    native_applied: bool
    fallback_field: str = ""
    diagnostics: list[Diagnostic] = field(default_factory=list)


def quote_identifier(name: str) -> str:
    """Double-quote a PartiQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def extract_table_and_index(statement: str) -> tuple[str, str]:
    """Return ``(table, index)`` from the FROM clause; empty strings when absent."""
    for pattern in _FROM_PATTERNS:
        match = pattern.search(statement)
        if not match:
            continue
        table = match.group(1).strip("\"'")
        index = match.group(2).strip("\"'") if pattern.groups > 1 else ""
        return table, index
    return "", ""


def _partition_key_pattern(partition_key: str) -> re.Pattern[str]:
    escaped = re.escape(partition_key)
    return re.compile(rf'(?:"{escaped}"|{escaped})\s*{_KEY_OPERATORS}', re.IGNORECASE)


def partition_key_has_equality(statement: str, partition_key: str) -> bool:
    """True when the first comparison against ``partition_key`` is a plain ``=``."""
    if not partition_key:
        return False
    match = _partition_key_pattern(partition_key).search(statement)
    return bool(match) and match.group(1) == "="


def has_order_by(statement: str) -> bool:
    return "ORDER BY" in statement.upper()


def inject_order_by(statement: str, ascending: bool, sort_key: str) -> tuple[str, bool]:
    """Append ``ORDER BY "<sort_key>" ASC|DESC`` ahead of any trailing ``;``.

    Returns the (possibly rewritten) statement and whether native ordering is
    now in place.  Statements without a WHERE clause are left alone.
    """
    if not sort_key:
        return statement, False
    if has_order_by(statement):
        return statement, True

    upper = statement.upper()
    if "WHERE" not in upper:
        logger.info("ORDER BY injection skipped, statement has no WHERE clause")
        return statement, False

    body = statement.strip()
    terminator = ""
    if body.endswith(";"):
        body = body[:-1].rstrip()
        terminator = ";"

    direction = "ASC" if ascending else "DESC"
    return f"{body} ORDER BY {quote_identifier(sort_key)} {direction}{terminator}", True


def _declined(statement: str, fallback_field: str, reason: str) -> OrderPlan:
    logger.info("Native ordering declined | reason=%s | fallback=%s", reason, fallback_field or "-")
    return OrderPlan(
        statement=statement,
        native_applied=False,
        fallback_field=fallback_field,
        diagnostics=[Diagnostic(
            kind="native_order_declined",
            message=reason,
            field=fallback_field or None,
        )],
    )


def plan_native_order(
    statement: str,
    *,
    ascending: bool,
    requested_sort_key: str = "",
    describe_key_schema: Callable[[str, str], KeySchema],
) -> OrderPlan:
    """Decide whether ``statement`` can be ordered server side.

    Parameters
    ----------
    statement : str
        The caller's PartiQL statement.
    ascending : bool
        Requested direction (True = ASC).
    requested_sort_key : str
        Optional sort key the caller expects; must match the schema's.
    describe_key_schema : callable
        ``(table, index) -> KeySchema`` lookup, usually the transport's.
    """
    requested_sort_key = requested_sort_key.strip()
    if has_order_by(statement):
        return OrderPlan(statement=statement, native_applied=True, fallback_field=requested_sort_key)

    table, index = extract_table_and_index(statement)
    if not table:
        return _declined(statement, requested_sort_key, "no table name found in FROM clause")

    try:
        schema = describe_key_schema(table, index)
    except DynaframeError as exc:
        logger.warning("Key schema lookup failed | table=%s | index=%s | error=%s", table, index, exc)
        return _declined(statement, requested_sort_key, f"key schema lookup failed: {exc}")

    fallback_field = requested_sort_key or schema.sort_key

    if not schema.sort_key:
        return _declined(statement, fallback_field, f"{table} has no sort key")
    if requested_sort_key and requested_sort_key.lower() != schema.sort_key.lower():
        return _declined(
            statement, fallback_field,
            f"requested sort key {requested_sort_key!r} does not match schema sort key {schema.sort_key!r}",
        )
    if not schema.partition_key:
        return _declined(statement, fallback_field, f"{table} has no partition key")
    if not partition_key_has_equality(statement, schema.partition_key):
        return _declined(
            statement, fallback_field,
            f"statement does not pin partition key {schema.partition_key!r} with '='",
        )

    rewritten, applied = inject_order_by(statement, ascending, schema.sort_key)
    if not applied:
        return _declined(statement, fallback_field, "statement has no WHERE clause")

    logger.info("Native ordering applied | table=%s | sort_key=%s | ascending=%s", table, schema.sort_key, ascending)
    return OrderPlan(
        statement=rewritten,
        native_applied=True,
        fallback_field=schema.sort_key,
        diagnostics=[Diagnostic(
            kind="native_order_applied",
            message=f"ORDER BY {schema.sort_key} pushed down",
            field=schema.sort_key,
        )],
    )
