"""
Unit tests -- paginated collector: guards, partial-or-error policy, trimming.
"""
import pytest

from dynaframe.core.errors import QueryAbortedError, RemoteCallError
from dynaframe.db.collector import CollectLimits, StopReason, collect_items, trim_to_limit


def items(count):
    return [{"id": {"N": str(i)}} for i in range(count)]


STATEMENT = 'SELECT * FROM "T"'



def test_collects_every_page(make_transport, make_pages):
    transport = make_transport(pages=make_pages(items(7), 3))
    result = collect_items(transport, STATEMENT, limits=CollectLimits())
    assert len(result.items) == 7
    assert result.pages == 3
    assert result.stop_reason is StopReason.EXHAUSTED
    assert not result.partial
    assert [c["next_token"] for c in transport.calls] == [None, "1", "2"]


def test_limit_scenario_three_per_page(make_transport, make_pages):
    transport = make_transport(pages=make_pages(items(12), 3))
    result = collect_items(transport, STATEMENT, 7, limits=CollectLimits())
    assert result.pages == 3
    assert len(result.items) == 9
    assert result.stop_reason is StopReason.LIMIT_REACHED
    assert all(c["limit"] == 7 for c in transport.calls)

    trimmed = trim_to_limit(result.items, 7)
    assert [row["id"].value for row in trimmed] == [str(i) for i in range(7)]


def test_empty_result_is_not_an_error(make_transport):
    result = collect_items(make_transport(), STATEMENT, limits=CollectLimits())
    assert result.items == []
    assert result.stop_reason is StopReason.EXHAUSTED



def test_item_cap_stops_without_error(make_transport, make_pages):
    transport = make_transport(pages=make_pages(items(10), 2))
    result = collect_items(transport, STATEMENT, limits=CollectLimits(max_items=4))
    assert len(result.items) == 4
    assert result.stop_reason is StopReason.ITEM_CAP
    assert result.partial


def test_page_cap_returns_partial(make_transport, make_pages):
    transport = make_transport(pages=make_pages(items(10), 2))
    result = collect_items(transport, STATEMENT, limits=CollectLimits(max_pages=2))
    assert result.pages == 2
    assert len(result.items) == 4
    assert result.stop_reason is StopReason.PAGE_CAP
    assert result.diagnostics[0].detail["reason"] == "page_cap"


def test_page_cap_zero_raises(make_transport):
    with pytest.raises(QueryAbortedError) as info:
        collect_items(make_transport(), STATEMENT, limits=CollectLimits(max_pages=0))
    assert info.value.reason == "page_cap"


def test_timeout_returns_partial(make_transport, make_pages, make_clock):
    transport = make_transport(pages=make_pages(items(10), 2))
    clock = make_clock(step=25.0)
    result = collect_items(transport, STATEMENT, limits=CollectLimits(max_seconds=60), clock=clock)
    assert result.stop_reason is StopReason.TIMEOUT
    assert 0 < len(result.items) < 10


def test_timeout_before_first_page_raises(make_transport, make_clock):
    with pytest.raises(QueryAbortedError) as info:
        collect_items(
            make_transport(pages=[items(2)]), STATEMENT,
            limits=CollectLimits(max_seconds=1), clock=make_clock(step=5.0),
        )
    assert info.value.reason == "timeout"


def test_cancel_returns_partial(make_transport, make_pages, make_cancel):
    transport = make_transport(pages=make_pages(items(10), 2))
    result = collect_items(transport, STATEMENT, limits=CollectLimits(), cancel=make_cancel(2))
    assert result.stop_reason is StopReason.CANCELLED
    assert len(result.items) == 4
    assert len(transport.calls) == 2


def test_cancel_before_first_page_raises(make_transport, make_cancel):
    transport = make_transport(pages=[items(2)])
    with pytest.raises(QueryAbortedError) as info:
        collect_items(transport, STATEMENT, limits=CollectLimits(), cancel=make_cancel(0))
    assert info.value.reason == "cancelled"
    assert transport.calls == []


def test_fetch_error_after_rows_returns_partial(make_transport, make_pages):
    transport = make_transport(pages=make_pages(items(6), 2), fail_on_page=2)
    result = collect_items(transport, STATEMENT, limits=CollectLimits())
    assert result.stop_reason is StopReason.FETCH_ERROR
    assert len(result.items) == 4


def test_fetch_error_on_first_page_raises(make_transport):
    transport = make_transport(pages=[items(2)], fail_on_page=0)
    with pytest.raises(RemoteCallError):
        collect_items(transport, STATEMENT, limits=CollectLimits())


def test_never_retries(make_transport):
    transport = make_transport(pages=[items(2)], fail_on_page=0)
    with pytest.raises(RemoteCallError):
        collect_items(transport, STATEMENT, limits=CollectLimits())
    assert len(transport.calls) == 1



def test_trim_without_limit_is_noop():
    data = list(range(5))
    assert trim_to_limit(data, None) is data
    assert trim_to_limit(data, 0) is data
    assert trim_to_limit(data, 9) is data
    assert trim_to_limit(data, 2) == [0, 1]
