"""
Unit tests -- native ordering planner: FROM parsing, partition-key detection, ORDER BY injection.
"""
import pytest

from dynaframe.core.errors import RemoteCallError
from dynaframe.db.transport import KeySchema
from dynaframe.partiql.planner import (
    extract_table_and_index,
    inject_order_by,
    partition_key_has_equality,
    plan_native_order,
    quote_identifier,
)


def schema_lookup(schemas):
    def _describe(table, index):
        try:
            return schemas[(table, index)]
        except KeyError:
            raise RemoteCallError(f"ResourceNotFoundException: {table}") from None
    return _describe


PK_SK = schema_lookup({("T", ""): KeySchema("pk", "sk")})



@pytest.mark.parametrize("statement, expected", [
    ('SELECT * FROM "Orders" INDEX "ByDate" WHERE x = 1', ("Orders", "ByDate")),
    ('SELECT * FROM "Orders" WHERE x = 1', ("Orders", "")),
    ("SELECT * FROM Orders INDEX ByDate WHERE x = 1", ("Orders", "ByDate")),
    ("select * from Orders where x = 1", ("Orders", "")),
    ("SELECT * FROM Orders;", ("Orders", "")),
    ("SELECT 1", ("", "")),
])
def test_extract_table_and_index(statement, expected):
    assert extract_table_and_index(statement) == expected


@pytest.mark.parametrize("statement, expected", [
    ("SELECT * FROM T WHERE \"pk\" = 'x'", True),
    ("SELECT * FROM T WHERE pk='x'", True),
    ("SELECT * FROM T WHERE PK = 'x'", True),
    ("SELECT * FROM T WHERE \"pk\" > 'x'", False),
    ("SELECT * FROM T WHERE pk IN ['a', 'b']", False),
    ("SELECT * FROM T WHERE pk BETWEEN 'a' AND 'b'", False),
    ("SELECT * FROM T WHERE pk <> 'x'", False),
    ("SELECT * FROM T WHERE pk >= 'x'", False),
    ("SELECT * FROM T WHERE other = 'x'", False),
])
def test_partition_key_equality(statement, expected):
    assert partition_key_has_equality(statement, "pk") is expected


def test_partition_key_equality_empty_key():
    assert partition_key_has_equality("SELECT * FROM T WHERE pk = 1", "") is False


def test_quote_identifier_doubles_quotes():
    assert quote_identifier('we"ird') == '"we""ird"'



def test_inject_order_by_ascending():
    statement = "SELECT * FROM \"T\" WHERE \"pk\" = 'x'"
    assert inject_order_by(statement, True, "sk") == (statement + ' ORDER BY "sk" ASC', True)


def test_inject_order_by_keeps_terminator():
    rewritten, applied = inject_order_by("SELECT * FROM T WHERE pk = 'x' ;", False, "sk")
    assert applied
    assert rewritten == "SELECT * FROM T WHERE pk = 'x' ORDER BY \"sk\" DESC;"


def test_inject_order_by_requires_where():
    assert inject_order_by('SELECT * FROM "T"', True, "sk") == ('SELECT * FROM "T"', False)


def test_inject_order_by_existing_clause_untouched():
    statement = "SELECT * FROM T WHERE pk = 'x' order by sk"
    assert inject_order_by(statement, True, "sk") == (statement, True)



def test_plan_scenario_equality_injects_order_by():
    plan = plan_native_order(
        "SELECT * FROM \"T\" WHERE \"pk\" = 'x'", ascending=True, describe_key_schema=PK_SK,
    )
    assert plan.statement == "SELECT * FROM \"T\" WHERE \"pk\" = 'x' ORDER BY \"sk\" ASC"
    assert plan.native_applied is True
    assert plan.fallback_field == "sk"


def test_plan_scenario_range_falls_back_to_sort_key():
    statement = "SELECT * FROM \"T\" WHERE \"pk\" > 'x'"
    plan = plan_native_order(statement, ascending=True, describe_key_schema=PK_SK)
    assert plan.statement == statement
    assert plan.native_applied is False
    assert plan.fallback_field == "sk"
    assert plan.diagnostics[0].kind == "native_order_declined"


def test_plan_existing_order_by_is_native():
    statement = "SELECT * FROM \"T\" WHERE pk = 'x' ORDER BY sk DESC"
    plan = plan_native_order(statement, ascending=True, describe_key_schema=PK_SK)
    assert plan.statement == statement
    assert plan.native_applied is True


def test_plan_unknown_table_declines_with_requested_key():
    plan = plan_native_order(
        "SELECT * FROM \"Missing\" WHERE pk = 'x'",
        ascending=True, requested_sort_key="created", describe_key_schema=PK_SK,
    )
    assert plan.native_applied is False
    assert plan.fallback_field == "created"


def test_plan_no_table_declines():
    plan = plan_native_order("SELECT 1", ascending=True, describe_key_schema=PK_SK)
    assert plan.native_applied is False
    assert plan.fallback_field == ""


def test_plan_mismatched_sort_key_declines():
    plan = plan_native_order(
        "SELECT * FROM \"T\" WHERE pk = 'x'",
        ascending=True, requested_sort_key="other", describe_key_schema=PK_SK,
    )
    assert plan.native_applied is False
    assert plan.fallback_field == "other"


def test_plan_sort_key_match_is_case_insensitive():
    plan = plan_native_order(
        "SELECT * FROM \"T\" WHERE pk = 'x'",
        ascending=False, requested_sort_key="SK", describe_key_schema=PK_SK,
    )
    assert plan.native_applied is True
    assert plan.statement.endswith('ORDER BY "sk" DESC')


def test_plan_sort_key_surrounding_whitespace_ignored():
    plan = plan_native_order(
        "SELECT * FROM \"T\" WHERE pk = 'x'",
        ascending=True, requested_sort_key="  sk ", describe_key_schema=PK_SK,
    )
    assert plan.native_applied is True
    assert plan.statement.endswith('ORDER BY "sk" ASC')


def test_plan_table_without_sort_key_declines():
    lookup = schema_lookup({("T", ""): KeySchema("pk")})
    plan = plan_native_order("SELECT * FROM T WHERE pk = 'x'", ascending=True, describe_key_schema=lookup)
    assert plan.native_applied is False
    assert plan.fallback_field == ""


def test_plan_uses_index_key_schema():
    lookup = schema_lookup({
        ("T", ""): KeySchema("pk", "sk"),
        ("T", "ByStatus"): KeySchema("status", "updated"),
    })
    plan = plan_native_order(
        "SELECT * FROM \"T\" INDEX \"ByStatus\" WHERE status = 'open'",
        ascending=True, describe_key_schema=lookup,
    )
    assert plan.native_applied is True
    assert plan.statement.endswith('ORDER BY "updated" ASC')


def test_plan_without_where_declines():
    lookup = schema_lookup({("T", ""): KeySchema("pk", "sk")})
    # the partition key appears only in the projection
    plan = plan_native_order('SELECT pk = 1 FROM "T"', ascending=True, describe_key_schema=lookup)
    assert plan.native_applied is False
    assert plan.fallback_field == "sk"
