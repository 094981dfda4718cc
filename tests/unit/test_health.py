"""Tests for health check functionality."""
import pytest
from locale_engine.health import (
    check_storage,
    check_cache,
    check_config,
    get_health_status,
    HealthStatus
)
from locale_engine.persistence.tiers import InMemoryStorageTier


@pytest.mark.asyncio
async def test_check_storage(make_engine):
    """Test storage health check."""
    result = await check_storage(make_engine())
    assert result["status"] == HealthStatus.HEALTHY
    assert result["tiers"] == {"durable": True, "session": True}


@pytest.mark.asyncio
async def test_check_storage_degraded(make_engine, broken_tier):
    engine = make_engine(tiers=[broken_tier("durable"), InMemoryStorageTier("session")])
    result = await check_storage(engine)
    assert result["status"] == HealthStatus.DEGRADED
    assert "session" in result["message"]


@pytest.mark.asyncio
async def test_check_cache(make_engine):
    """Test cache health check."""
    engine = make_engine()
    await engine.resolve("/ja/news")
    await engine.resolve("/ja/news")

    result = await check_cache(engine)
    assert result["status"] == HealthStatus.HEALTHY
    assert result["size"] == 1
    # warm-up, miss, hit
    assert result["hit_rate"] == 0.333


@pytest.mark.asyncio
async def test_check_config(make_engine):
    """Test config health check."""
    result = await check_config(make_engine())
    assert result["status"] == HealthStatus.HEALTHY
    assert "7 locales" in result["message"]


@pytest.mark.asyncio
async def test_get_health_status(make_engine):
    """Test overall health status."""
    status = await get_health_status(make_engine())

    assert "status" in status
    assert "timestamp" in status
    assert set(status["components"]) == {"storage", "cache", "config"}
    assert status["status"] == HealthStatus.HEALTHY


@pytest.mark.asyncio
async def test_get_health_status_memory_only(make_engine):
    status = await get_health_status(make_engine(tiers=[]))
    assert status["components"]["storage"]["status"] == HealthStatus.DEGRADED
    assert status["status"] == HealthStatus.DEGRADED
