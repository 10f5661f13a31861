"""Tests for availability lookups and derived queries."""

import asyncio
from datetime import date

import httpx
import pytest

from blyss_booking.gateways.availability import (
    AvailabilityGateway,
    day_query_key,
    month_query_key,
)
from blyss_booking.gateways.http_client import ApiClient, TransportError
from blyss_booking.gateways.queries import DerivedQuery

from tests.conftest import PRO_ID


def gateway_for(handler) -> AvailabilityGateway:
    client = ApiClient(base_url="https://api.blyss.test/api", transport=httpx.MockTransport(handler))
    return AvailabilityGateway(client)


class CountingLoader:
    """Loader double that records calls and can be held open."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)
        self.gates = {}

    def hold(self, key):
        self.gates[key] = asyncio.Event()
        return self.gates[key]

    async def __call__(self, key):
        self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.fail_on:
            raise TransportError("boom")
        return f"value-{key}"


class TestAvailableDates:
    @pytest.mark.asyncio
    async def test_month_index(self, client):
        gateway = AvailabilityGateway(client)
        days = await gateway.fetch_available_dates(PRO_ID, "2025-06")
        assert days == frozenset({date(2025, 6, 10), date(2025, 6, 12)})

    @pytest.mark.asyncio
    async def test_other_month(self, client):
        days = await AvailabilityGateway(client).fetch_available_dates(PRO_ID, "2025-07")
        assert days == frozenset({date(2025, 7, 3)})

    @pytest.mark.asyncio
    async def test_empty_month(self, client):
        days = await AvailabilityGateway(client).fetch_available_dates(PRO_ID, "2025-09")
        assert days == frozenset()

    @pytest.mark.asyncio
    async def test_days_outside_month_are_dropped(self):
        gateway = gateway_for(lambda r: httpx.Response(
            200, json={"success": True, "data": ["2025-06-10", "2025-07-01T00:00:00.000Z"]}
        ))
        days = await gateway.fetch_available_dates(PRO_ID, "2025-06")
        assert days == frozenset({date(2025, 6, 10)})

    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self):
        gateway = gateway_for(lambda r: httpx.Response(200, json={"success": True, "data": ["soon"]}))
        with pytest.raises(TransportError):
            await gateway.fetch_available_dates(PRO_ID, "2025-06")

    @pytest.mark.asyncio
    async def test_failure_degrades_to_empty(self, market, client):
        market.fail_routes["dates"] = 500
        days = await AvailabilityGateway(client).get_available_dates(PRO_ID, "2025-06")
        assert days == frozenset()

    @pytest.mark.asyncio
    async def test_network_failure_degrades_to_empty(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        assert await gateway_for(handler).get_available_dates(PRO_ID, "2025-06") == frozenset()

    @pytest.mark.asyncio
    async def test_malformed_envelope_degrades_to_empty(self):
        gateway = gateway_for(lambda r: httpx.Response(
            200, json={"success": "maybe", "data": ["2025-06-10"]}
        ))
        assert await gateway.get_available_dates(PRO_ID, "2025-06") == frozenset()


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_sorted_by_time(self, client):
        slots = await AvailabilityGateway(client).fetch_available_slots(PRO_ID, date(2025, 6, 10))
        assert [s.time for s in slots] == ["10:00", "14:00"]
        assert [s.id for s in slots] == [11, 12]

    @pytest.mark.asyncio
    async def test_seconds_are_trimmed(self):
        gateway = gateway_for(lambda r: httpx.Response(
            200, json={"success": True, "data": [{"id": 7, "time": "09:30:00", "duration": 45}]}
        ))
        slots = await gateway.fetch_available_slots(PRO_ID, date(2025, 6, 10))
        assert slots[0].time == "09:30"
        assert slots[0].duration == 45

    @pytest.mark.asyncio
    async def test_unpadded_time_is_padded(self):
        gateway = gateway_for(lambda r: httpx.Response(
            200, json={"success": True, "data": [{"id": 7, "time": "9:00", "duration": 60}]}
        ))
        slots = await gateway.fetch_available_slots(PRO_ID, date(2025, 6, 10))
        assert slots[0].time == "09:00"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["soon", "25:00", "9h30", ""])
    async def test_invalid_time_degrades_to_empty(self, raw):
        gateway = gateway_for(lambda r: httpx.Response(
            200, json={"success": True, "data": [{"id": 7, "time": raw}]}
        ))
        assert await gateway.get_available_slots(PRO_ID, date(2025, 6, 10)) == []

    @pytest.mark.asyncio
    async def test_reserved_slot_is_not_listed(self, market, client):
        market.slots[12].status = "reserved"
        slots = await AvailabilityGateway(client).get_available_slots(PRO_ID, date(2025, 6, 10))
        assert [s.time for s in slots] == ["10:00"]

    @pytest.mark.asyncio
    async def test_failure_degrades_to_empty(self, market, client):
        market.fail_routes["slots"] = 503
        assert await AvailabilityGateway(client).get_available_slots(PRO_ID, date(2025, 6, 10)) == []

    @pytest.mark.asyncio
    async def test_malformed_slot_degrades_to_empty(self):
        gateway = gateway_for(lambda r: httpx.Response(200, json={"success": True, "data": [{"time": "10:00"}]}))
        assert await gateway.get_available_slots(PRO_ID, date(2025, 6, 10)) == []


class TestDerivedQuery:
    @pytest.mark.asyncio
    async def test_cached_value_is_reused(self):
        loader = CountingLoader()
        query = DerivedQuery(loader, fallback=None)
        first = await query.select("a")
        second = await query.select("a")
        assert first.value == second.value == "value-a"
        assert second.from_cache
        assert loader.calls == ["a"]

    @pytest.mark.asyncio
    async def test_uncached_query_refetches(self):
        loader = CountingLoader()
        query = DerivedQuery(loader, fallback=None, cache_results=False)
        await query.select("a")
        await query.select("a")
        assert loader.calls == ["a", "a"]

    @pytest.mark.asyncio
    async def test_failure_returns_fallback_and_is_not_cached(self):
        loader = CountingLoader(fail_on={"a"})
        query = DerivedQuery(loader, fallback="empty")
        result = await query.select("a")
        assert result.value == "empty"
        assert result.current
        loader.fail_on.clear()
        assert (await query.select("a")).value == "value-a"
        assert loader.calls == ["a", "a"]

    @pytest.mark.asyncio
    async def test_concurrent_selects_share_one_fetch(self):
        loader = CountingLoader()
        gate = loader.hold("a")
        query = DerivedQuery(loader, fallback=None)
        first = asyncio.create_task(query.select("a"))
        second = asyncio.create_task(query.select("a"))
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(first, second)
        assert [r.value for r in results] == ["value-a", "value-a"]
        assert loader.calls == ["a"]

    @pytest.mark.asyncio
    async def test_superseded_result_is_stale(self):
        loader = CountingLoader()
        gate_a = loader.hold("a")
        gate_b = loader.hold("b")
        query = DerivedQuery(loader, fallback=None)

        pending_a = asyncio.create_task(query.select("a"))
        await asyncio.sleep(0)
        pending_b = asyncio.create_task(query.select("b"))
        await asyncio.sleep(0)

        gate_b.set()
        result_b = await pending_b
        gate_a.set()
        result_a = await pending_a

        assert result_b.current
        assert not result_a.current
        assert query.latest_key == "b"

    @pytest.mark.asyncio
    async def test_reselecting_makes_result_current_again(self):
        loader = CountingLoader()
        gate_a = loader.hold("a")
        query = DerivedQuery(loader, fallback=None)

        pending_a = asyncio.create_task(query.select("a"))
        await asyncio.sleep(0)
        await query.select("b")
        pending_again = asyncio.create_task(query.select("a"))
        await asyncio.sleep(0)
        gate_a.set()

        # "a" is the latest input again, so the first request is current too
        assert (await pending_a).current
        assert (await pending_again).current
        assert loader.calls.count("a") == 1

    @pytest.mark.asyncio
    async def test_cancel_makes_pending_stale_and_skips_cache(self):
        loader = CountingLoader()
        gate = loader.hold("a")
        query = DerivedQuery(loader, fallback=None)
        pending = asyncio.create_task(query.select("a"))
        await asyncio.sleep(0)
        query.cancel()
        gate.set()
        assert not (await pending).current
        assert query.latest_key is None
        del loader.gates["a"]
        assert not (await query.select("a")).from_cache

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        loader = CountingLoader()
        query = DerivedQuery(loader, fallback=None, max_entries=2)
        await query.select("a")
        await query.select("b")
        await query.select("a")
        await query.select("c")  # evicts b
        assert (await query.select("a")).from_cache
        assert not (await query.select("b")).from_cache

    @pytest.mark.asyncio
    async def test_invalidate_drops_cache(self):
        loader = CountingLoader()
        query = DerivedQuery(loader, fallback=None)
        await query.select("a")
        query.invalidate()
        assert not (await query.select("a")).from_cache
        assert loader.calls == ["a", "a"]


class TestAvailabilityQueries:
    @pytest.mark.asyncio
    async def test_month_query_is_cached(self, market, client):
        months = AvailabilityGateway(client).month_query()
        key = month_query_key(PRO_ID, "2025-06")
        await months.select(key)
        result = await months.select(key)
        assert result.from_cache
        assert result.value == frozenset({date(2025, 6, 10), date(2025, 6, 12)})
        date_calls = [r for r in market.requests if "available-dates" in r.url.path]
        assert len(date_calls) == 1

    @pytest.mark.asyncio
    async def test_month_query_does_not_cache_failures(self, market, client):
        months = AvailabilityGateway(client).month_query()
        key = month_query_key(PRO_ID, "2025-06")
        market.fail_routes["dates"] = 500
        assert (await months.select(key)).value == frozenset()
        del market.fail_routes["dates"]
        assert (await months.select(key)).value == frozenset({date(2025, 6, 10), date(2025, 6, 12)})

    @pytest.mark.asyncio
    async def test_day_query_always_refetches(self, market, client):
        days = AvailabilityGateway(client).day_query()
        key = day_query_key(PRO_ID, date(2025, 6, 10))
        await days.select(key)
        market.slots[11].status = "reserved"
        result = await days.select(key)
        assert [s.time for s in result.value] == ["14:00"]
