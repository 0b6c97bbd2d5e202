"""
Unit tests for the query cache.

The pipeline is mocked; every send() call is one "network call".
"""
import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from expense_client.models.cache import CacheStatus
from expense_client.models.expense import ExpenseFilters, ExpensePage
from expense_client.services.query_cache import QueryCache, make_key
from expense_client.utils.errors import InvalidRequestError, ServerError

from fake_backend import BASE_URL

SUMMARY = {"total_spend": 72.5, "currency": "USD", "count": 2, "breakdown": []}


def json_response(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=data, request=httpx.Request("GET", BASE_URL))


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 2, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(mock_api, clock):
    return QueryCache(mock_api, stale_seconds=30, clock=clock)


def respond_by_path(mock_api, mock_expense_page):
    """send() answers by path, like the real backend."""
    async def send(request):
        if request.method != "GET":
            return json_response({"id": "new", **(request.json_body or {})}, status_code=201)
        if request.path == "/expenses/summary/":
            return json_response(SUMMARY)
        if request.path == "/budgets/":
            return json_response([{"id": "bud-1", "category": "food", "amount": "200.00"}])
        return json_response(mock_expense_page)
    mock_api.send.side_effect = send


class TestCacheKeys:
    """Test key derivation."""

    def test_key_ignores_param_order_and_none(self):
        assert make_key("expenses", {"page": 1, "category": "food"}) == \
            make_key("expenses", {"category": "food", "page": 1, "to_date": None})

    def test_model_and_dict_params_share_a_key(self):
        assert make_key("expenses", ExpenseFilters(page=2, category="food")) == \
            make_key("expenses", {"page": 2, "category": "food"})

    def test_different_filters_get_different_keys(self):
        assert make_key("expenses", {"category": "food"}) != make_key("expenses", {"category": "transport"})
        assert make_key("expenses", {"page": 1}) != make_key("expenses", {"page": 2})

    @pytest.mark.asyncio
    async def test_filters_populate_distinct_entries(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)

        await cache.read("expenses", {"category": "food"})
        await cache.read("expenses", {"category": "transport"})

        assert mock_api.send.await_count == 2
        assert cache.entry("expenses", {"category": "food"}) is not cache.entry("expenses", {"category": "transport"})

        assert cache.invalidate("expenses") == 2
        assert cache.view("expenses", {"category": "food"}).status == "loading"
        assert cache.view("expenses", {"category": "transport"}).status == "loading"


class TestReads:
    """Test hits, misses and staleness."""

    @pytest.mark.asyncio
    async def test_fresh_hit_skips_network(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)

        first = await cache.read("expenses", {"page": 1})
        second = await cache.read("expenses", {"page": 1})

        assert isinstance(first, ExpensePage)
        assert first.count == 2
        assert second is first
        assert mock_api.send.await_count == 1

    @pytest.mark.asyncio
    async def test_listing_params_become_offset(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)

        await cache.read("expenses", {"page": 3, "category": "food"})

        request = mock_api.send.call_args[0][0]
        assert request.path == "/expenses/"
        assert request.params == {"offset": 40, "limit": 20, "category": "food"}

    @pytest.mark.asyncio
    async def test_stale_entry_is_refetched_but_still_servable(self, cache, mock_api, clock, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)
        await cache.read("expenses-summary")

        clock.advance(31)

        state = cache.view("expenses-summary")
        assert state.status == "success"
        assert state.is_stale
        assert cache.peek("expenses-summary") is not None

        await cache.read("expenses-summary")
        assert mock_api.send.await_count == 2
        assert cache.entry("expenses-summary").status == CacheStatus.FRESH

    @pytest.mark.asyncio
    async def test_concurrent_reads_share_one_fetch(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)

        results = await asyncio.gather(*(cache.read("budgets") for _ in range(4)))

        assert mock_api.send.await_count == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_failed_read_reports_error(self, cache, mock_api):
        mock_api.send.side_effect = ServerError(502)

        with pytest.raises(ServerError):
            await cache.read("budgets")

        state = cache.view("budgets")
        assert state.status == "error"
        assert isinstance(state.error, ServerError)

    @pytest.mark.asyncio
    async def test_unknown_resource_raises(self, cache):
        with pytest.raises(ValueError):
            await cache.read("invoices")


class TestStaleWhileRevalidate:
    """Test that paging never blanks the listing."""

    @pytest.mark.asyncio
    async def test_page_one_survives_page_two_load(self, cache, mock_api, mock_expense_page):
        page_two_gate = asyncio.Event()
        page_two = {"count": 22, "results": []}

        async def send(request):
            if request.params.get("offset") == 20:
                await page_two_gate.wait()
                return json_response(page_two)
            return json_response(mock_expense_page)

        mock_api.send.side_effect = send
        page_one = await cache.read("expenses", {"page": 1})

        pending = asyncio.ensure_future(cache.read("expenses", {"page": 2}))
        await asyncio.sleep(0)

        # Page 2 is loading: the table keeps showing page 1
        state = cache.view("expenses", {"page": 2}, placeholder_params={"page": 1})
        assert state.status == "success"
        assert state.is_placeholder
        assert state.is_fetching
        assert state.data is page_one

        # Going back to page 1 before page 2 lands serves the old data, no fetch
        assert await cache.read("expenses", {"page": 1}) is page_one
        assert cache.peek("expenses", {"page": 1}) is page_one

        page_two_gate.set()
        result = await pending
        assert result.count == 22
        assert mock_api.send.await_count == 2
        assert cache.view("expenses", {"page": 2}).is_placeholder is False

    def test_no_placeholder_means_loading(self, cache):
        state = cache.view("expenses", {"page": 2}, placeholder_params={"page": 1})
        assert state.status == "loading"
        assert state.data is None


class TestWritesAndInvalidation:
    """Test write-then-invalidate."""

    @pytest.mark.asyncio
    async def test_expense_write_invalidates_listing_and_summary_only(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)
        await cache.read("expenses", {"page": 1, "category": "food"})
        await cache.read("expenses", {"page": 2})
        await cache.read("expenses-summary", {"month": "2025-02"})
        await cache.read("budgets")
        assert mock_api.send.await_count == 4

        await cache.write("expenses", "create", {"title": "Lunch", "amount": "12.00"})
        assert mock_api.send.await_count == 5

        await cache.read("expenses", {"page": 1, "category": "food"})
        await cache.read("expenses", {"page": 2})
        await cache.read("expenses-summary", {"month": "2025-02"})
        assert mock_api.send.await_count == 8

        await cache.read("budgets")
        assert mock_api.send.await_count == 8

    @pytest.mark.asyncio
    async def test_invalidated_entries_are_not_refetched_eagerly(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)
        await cache.read("expenses")

        await cache.write("expenses", "delete", resource_id="exp-1")

        assert mock_api.send.await_count == 2
        assert cache.entry("expenses").status == CacheStatus.ABSENT
        assert cache.peek("expenses") is None

    @pytest.mark.asyncio
    async def test_failed_write_invalidates_nothing(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)
        await cache.read("expenses")
        mock_api.send.side_effect = InvalidRequestError(details={"title": ["This field may not be blank."]})

        with pytest.raises(InvalidRequestError):
            await cache.write("expenses", "create", {"title": ""})

        assert cache.entry("expenses").status == CacheStatus.FRESH

    @pytest.mark.asyncio
    async def test_fetch_in_flight_during_write_does_not_repopulate(self, cache, mock_api, mock_expense_page):
        gate = asyncio.Event()

        async def send(request):
            if request.method == "GET":
                await gate.wait()
                return json_response(mock_expense_page)
            return json_response({"id": "new"}, status_code=201)

        mock_api.send.side_effect = send
        pending = asyncio.ensure_future(cache.read("expenses"))
        await asyncio.sleep(0)

        await cache.write("expenses", "create", {"title": "Lunch"})
        gate.set()
        await pending

        # The pre-write listing was handed to its caller but not cached
        assert cache.entry("expenses").status == CacheStatus.ABSENT
        await cache.read("expenses")
        assert mock_api.send.await_count == 3

    @pytest.mark.asyncio
    async def test_write_request_shapes(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)

        await cache.write("budgets", "update", {"amount": "250.00"}, resource_id="bud-1")
        update = mock_api.send.call_args[0][0]
        await cache.write("budgets", "delete", resource_id="bud-1")
        delete = mock_api.send.call_args[0][0]

        assert (update.method, update.path, update.json_body) == ("PATCH", "/budgets/bud-1/", {"amount": "250.00"})
        assert (delete.method, delete.path, delete.json_body) == ("DELETE", "/budgets/bud-1/", None)

    @pytest.mark.asyncio
    async def test_clear_drops_everything(self, cache, mock_api, mock_expense_page):
        respond_by_path(mock_api, mock_expense_page)
        await cache.read("expenses")
        await cache.read("budgets")

        cache.clear()

        assert cache.entry("expenses") is None
        assert cache.entry("budgets") is None
