"""Tests for inbound event deduplication."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from trendline.dedup import EventDeduplicator
from trendline.persistence import InMemoryStore, SQLiteStore


@pytest.mark.asyncio
async def test_second_delivery_is_duplicate(store):
    dedup = EventDeduplicator(store)

    assert await dedup.is_new("Ev1", "app_mention", "T1") is True
    assert await dedup.is_new("Ev1", "app_mention", "T1") is False
    assert await dedup.is_new("Ev2") is True

    record = await store.get_event("Ev1")
    assert record.event_type == "app_mention"
    assert record.tenant == "T1"


@pytest.mark.asyncio
async def test_concurrent_deliveries_accept_exactly_one(store):
    dedup = EventDeduplicator(store)

    results = await asyncio.gather(*(dedup.is_new("Ev-race") for _ in range(20)))
    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_concurrent_deliveries_accept_exactly_one_sqlite(tmp_path):
    dedup = EventDeduplicator(SQLiteStore(tmp_path / "events.db"))

    results = await asyncio.gather(*(dedup.is_new("Ev-race") for _ in range(20)))
    assert results.count(True) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("event_id", [None, "", "   "])
async def test_missing_id_is_processed(store, event_id):
    dedup = EventDeduplicator(store)
    assert await dedup.is_new(event_id) is True
    assert await dedup.is_new(event_id) is True


@pytest.mark.asyncio
async def test_store_failure_fails_open():
    failing = AsyncMock()
    failing.add_if_absent.side_effect = ConnectionError("store down")
    dedup = EventDeduplicator(failing)

    assert await dedup.is_new("Ev1") is True
    assert await dedup.is_new("Ev1") is True


@pytest.mark.asyncio
async def test_record_expires_after_ttl():
    now = [1000.0]
    dedup = EventDeduplicator(InMemoryStore(clock=lambda: now[0]), ttl=60)

    assert await dedup.is_new("Ev1") is True
    now[0] += 59
    assert await dedup.is_new("Ev1") is False
    now[0] += 2
    assert await dedup.is_new("Ev1") is True
