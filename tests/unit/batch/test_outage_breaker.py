"""Tests for the outage circuit breaker."""

from datetime import datetime, timedelta

import pytest

from rgpv_results.batch.outage_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    OutageBreaker,
)


@pytest.fixture
def breaker():
    return OutageBreaker("test")


class TestOutageBreaker:
    """Test suite for OutageBreaker."""

    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker):
        assert breaker.is_closed()
        assert await breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_single_failure_opens(self, breaker):
        await breaker.record_failure()

        assert breaker.is_open()
        assert await breaker.allow_request() is False

    @pytest.mark.asyncio
    async def test_threshold_is_configurable(self):
        breaker = OutageBreaker("test", CircuitBreakerConfig(failure_threshold=2))

        await breaker.record_failure()
        assert breaker.is_closed()

        await breaker.record_failure()
        assert breaker.is_open()

    @pytest.mark.asyncio
    async def test_half_open_allows_one_trial(self, breaker):
        await breaker.record_failure()
        breaker._status.last_outage_time = datetime.now() - timedelta(minutes=6)

        assert await breaker.allow_request() is True
        assert breaker.current_state == CircuitState.HALF_OPEN
        assert await breaker.allow_request() is False

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker):
        await breaker.record_failure()
        breaker._status.last_outage_time = datetime.now() - timedelta(minutes=6)
        await breaker.allow_request()

        await breaker.record_success()

        assert breaker.is_closed()
        assert await breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker):
        await breaker.record_failure()
        breaker._status.last_outage_time = datetime.now() - timedelta(minutes=6)
        await breaker.allow_request()

        await breaker.record_failure()

        assert breaker.is_open()
        assert await breaker.allow_request() is False

    @pytest.mark.asyncio
    async def test_release_trial_allows_another_trial(self, breaker):
        await breaker.record_failure()
        breaker._status.last_outage_time = datetime.now() - timedelta(minutes=6)
        await breaker.allow_request()

        await breaker.release_trial()

        assert breaker.current_state == CircuitState.HALF_OPEN
        assert await breaker.allow_request() is True

    @pytest.mark.asyncio
    async def test_get_status(self, breaker):
        await breaker.record_failure()

        status = breaker.get_status()

        assert status["name"] == "test"
        assert status["state"] == "open"
        assert status["outage_count"] == 1
        assert status["last_outage_time"] is not None
