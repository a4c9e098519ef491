"""
Unit tests -- query service: plan -> collect -> sort -> trim -> frame, on an in-memory transport.
"""
import pytest

from dynaframe.core.errors import QueryAbortedError, ValidationError
from dynaframe.db.collector import CollectLimits, StopReason
from dynaframe.db.transport import KeySchema
from dynaframe.engine.attribute_value import FieldType
from dynaframe.query.service import QueryResult, run_query
from dynaframe.query.spec import QuerySpec

LIMITS = CollectLimits()

SCHEMAS = {("Events", ""): KeySchema("pk", "sk")}


def event(pk, sk, **extra):
    item = {"pk": {"S": pk}, "sk": {"N": str(sk)}}
    for name, value in extra.items():
        item[name] = value
    return item


def spec(**kwargs):
    return QuerySpec(**kwargs)



def test_returns_query_result(make_transport):
    transport = make_transport(pages=[[event("a", 1)]])
    result = run_query(spec(query_text='SELECT * FROM "Events"'), transport, limits=LIMITS)
    assert isinstance(result, QueryResult)
    assert result.frame.field_names == ["pk", "sk"]
    assert result.stop_reason is StopReason.EXHAUSTED
    assert result.latency_ms >= 0


def test_empty_statement_rejected(make_transport):
    with pytest.raises(ValidationError):
        run_query(spec(query_text="   "), make_transport(), limits=LIMITS)


def test_empty_result_gives_empty_frame(make_transport):
    result = run_query(spec(query_text='SELECT * FROM "Events"', ref_id="B"), make_transport(), limits=LIMITS)
    assert result.frame.name == "B"
    assert result.frame.row_count == 0
    assert result.frame.fields == []


def test_spec_accepts_camel_case_payload():
    parsed = QuerySpec.model_validate({
        "refId": "Q",
        "queryText": "SELECT 1",
        "scanIndexForward": False,
        "datetimeAttributes": [{"name": "ts", "format": "1"}],
    })
    assert parsed.scan_index_forward is False
    assert parsed.datetime_formats() == {"ts": "1"}


@pytest.mark.parametrize("given, expected", [
    ("desc", "desc"),
    (" DESC ", "desc"),
    ("asc", "asc"),
    ("descending", "asc"),
    ("sideways", "asc"),
    ("", "asc"),
])
def test_spec_direction_other_than_desc_is_ascending(given, expected):
    assert QuerySpec(sort_direction=given).sort_direction == expected


def test_sort_key_whitespace_does_not_decline_native_order(make_transport):
    transport = make_transport(pages=[[event("x", 1)]], key_schemas=SCHEMAS)
    result = run_query(
        spec(query_text="SELECT * FROM \"Events\" WHERE \"pk\" = 'x'", scan_index_forward=True, sort_key=" sk "),
        transport, limits=LIMITS,
    )
    assert result.native_sort_applied is True



def test_native_order_pushed_down(make_transport):
    transport = make_transport(pages=[[event("x", 1), event("x", 2)]], key_schemas=SCHEMAS)
    result = run_query(
        spec(query_text="SELECT * FROM \"Events\" WHERE \"pk\" = 'x'", scan_index_forward=False),
        transport, limits=LIMITS,
    )
    assert result.native_sort_applied is True
    assert result.client_sort is None
    assert transport.calls[0]["statement"].endswith('ORDER BY "sk" DESC')
    # server order is kept as returned
    assert result.frame.get_field("sk").values == [1, 2]


def test_range_filter_falls_back_to_client_sort(make_transport):
    transport = make_transport(
        pages=[[event("x", 3), event("y", 1), event("z", 2)]], key_schemas=SCHEMAS,
    )
    statement = "SELECT * FROM \"Events\" WHERE \"pk\" > 'a'"
    result = run_query(spec(query_text=statement, scan_index_forward=True), transport, limits=LIMITS)
    assert transport.calls[0]["statement"] == statement
    assert result.native_sort_applied is False
    assert result.client_sort.field == "sk"
    assert result.frame.get_field("sk").values == [1, 2, 3]


def test_explicit_sort_by_wins(make_transport):
    transport = make_transport(pages=[[
        event("b", 1, name={"S": "beta"}),
        event("a", 2, name={"S": "alpha"}),
    ]])
    result = run_query(
        spec(query_text='SELECT * FROM "Events"', sort_by="name", sort_direction="asc"),
        transport, limits=LIMITS,
    )
    assert result.frame.get_field("name").values == ["alpha", "beta"]
    assert result.client_sort.source == "explicit"


def test_heuristic_sort_field(make_transport):
    transport = make_transport(pages=[[
        {"id": {"S": "1"}, "timestamp": {"N": "20"}},
        {"id": {"S": "2"}, "timestamp": {"N": "10"}},
    ]])
    # describe fails for an unknown table, so ordering falls back to the heuristic list
    result = run_query(
        spec(query_text='SELECT * FROM "Unknown"', scan_index_forward=True),
        transport, limits=LIMITS,
    )
    assert result.client_sort.field == "timestamp"
    assert result.frame.get_field("id").values == ["2", "1"]



def test_limit_trims_after_sort(make_transport, make_pages):
    wire = [event("x", n) for n in (9, 3, 7, 1, 8, 2, 6, 4, 5)]
    transport = make_transport(pages=make_pages(wire, 3), key_schemas=SCHEMAS)
    result = run_query(
        spec(query_text="SELECT * FROM \"Events\" WHERE pk > 'a'", scan_index_forward=True, limit=7),
        transport, limits=LIMITS,
    )
    assert len(transport.calls) == 3
    assert result.frame.row_count == 7
    assert result.frame.get_field("sk").values == [1, 2, 3, 4, 5, 6, 7]
    assert "trimmed" in [d.kind for d in result.diagnostics]


def test_limit_scenario_seven_rows(make_transport, make_pages):
    wire = [event("x", n) for n in range(12)]
    transport = make_transport(pages=make_pages(wire, 3))
    result = run_query(spec(query_text='SELECT * FROM "Events"', limit=7), transport, limits=LIMITS)
    assert len(transport.calls) == 3
    assert result.frame.row_count == 7
    assert result.frame.get_field("sk").values == list(range(7))



def test_datetime_attributes_applied(make_transport):
    transport = make_transport(pages=[[{"ts": {"N": "1700000000000"}}]])
    result = run_query(
        spec(query_text='SELECT * FROM "Events"', datetime_attributes=[{"name": "ts", "format": "2"}]),
        transport, limits=LIMITS,
    )
    assert result.frame.get_field("ts").field_type is FieldType.TIME


def test_partial_result_marked(make_transport, make_pages):
    transport = make_transport(pages=make_pages([event("x", n) for n in range(6)], 2), fail_on_page=1)
    result = run_query(spec(query_text='SELECT * FROM "Events"'), transport, limits=LIMITS)
    assert result.partial
    assert result.frame.row_count == 2


def test_cancelled_before_any_row_raises(make_transport, make_cancel):
    with pytest.raises(QueryAbortedError):
        run_query(
            spec(query_text='SELECT * FROM "Events"'), make_transport(pages=[[event("x", 1)]]),
            limits=LIMITS, cancel=make_cancel(0),
        )
