"""Tests for the completion cache."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from rgpv_results.batch.cache import CompletionCache
from rgpv_results.storage.json_store import InMemoryResultStore, JsonResultStore


class TestCompletionCache:
    """Test suite for CompletionCache."""

    @pytest.mark.asyncio
    async def test_load_from_store(self, sample_payload):
        store = InMemoryResultStore({"0818CS231001": sample_payload})
        cache = CompletionCache(store)

        assert await cache.load() == 1
        assert "0818CS231001" in cache
        assert "0818CS231002" not in cache

    @pytest.mark.asyncio
    async def test_add_persists_payload(self, tmp_path, sample_payload):
        store = JsonResultStore(tmp_path)
        cache = CompletionCache(store)
        await cache.load()

        assert await cache.add("0818CS231001", sample_payload) is True

        assert "0818CS231001" in cache
        assert await cache.read("0818CS231001") == sample_payload
        assert await store.list_completed_identifiers() == {"0818CS231001"}

    @pytest.mark.asyncio
    async def test_failed_write_is_not_cached(self, sample_payload):
        store = AsyncMock()
        store.write_result.return_value = False
        cache = CompletionCache(store)

        assert await cache.add("0818CS231001", sample_payload) is False
        assert "0818CS231001" not in cache

    @pytest.mark.asyncio
    async def test_concurrent_adds(self, sample_payload):
        cache = CompletionCache(InMemoryResultStore())

        await asyncio.gather(*(
            cache.add(f"0818CS23{n:04d}", sample_payload) for n in range(1001, 1021)
        ))

        assert len(cache) == 20
