"""Tests for the storage tier implementations."""
import json

import pytest

from locale_engine.persistence.tiers import CookieStorageTier, InMemoryStorageTier, SqlStorageTier


@pytest.mark.asyncio
async def test_in_memory_tier():
    tier = InMemoryStorageTier("session")
    await tier.set("k", "v")
    assert await tier.get("k") == "v"
    await tier.remove("k")
    assert await tier.get("k") is None
    await tier.remove("k")


@pytest.mark.asyncio
async def test_probe_leaves_no_trace():
    tier = InMemoryStorageTier()
    assert await tier.probe() is True
    assert tier.snapshot() == {}


@pytest.mark.asyncio
async def test_probe_fails_for_broken_tier(broken_tier):
    assert await broken_tier().probe() is False


@pytest.mark.asyncio
async def test_sql_tier_in_memory():
    tier = SqlStorageTier("sqlite://")
    assert await tier.probe() is True

    await tier.set("locale_preference_v3", '{"locale": "ja"}')
    assert await tier.get("locale_preference_v3") == '{"locale": "ja"}'

    await tier.set("locale_preference_v3", '{"locale": "ko"}')
    assert await tier.get("locale_preference_v3") == '{"locale": "ko"}'

    await tier.remove("locale_preference_v3")
    assert await tier.get("locale_preference_v3") is None
    tier.dispose()


@pytest.mark.asyncio
async def test_sql_tier_persists_to_file(tmp_path):
    url = f"sqlite:///{tmp_path / 'store' / 'locale.db'}"
    writer = SqlStorageTier(url)
    await writer.set("k", "v")
    writer.dispose()

    reader = SqlStorageTier(url)
    assert await reader.get("k") == "v"
    reader.dispose()


@pytest.mark.asyncio
async def test_cookie_tier_round_trips_json():
    tier = CookieStorageTier(max_age=100, path="/")
    value = json.dumps({"locale": "zh-TC", "source": "user"})
    await tier.set("locale_preference_v3", value)
    assert await tier.get("locale_preference_v3") == value

    header = tier.headers()["locale_preference_v3"]
    assert "Max-Age=100" in header
    assert "Path=/" in header
    assert "SameSite=Lax" in header


@pytest.mark.asyncio
async def test_cookie_tier_loads_request_header():
    tier = CookieStorageTier()
    tier.load("locale=ja; other=1")
    assert await tier.get("locale") == "ja"
    await tier.remove("locale")
    assert await tier.get("locale") is None


@pytest.mark.asyncio
async def test_cookie_tier_remove_expires_browser_cookie():
    tier = CookieStorageTier(path="/")
    tier.load("locale_preference_v3=ja")

    await tier.remove("locale_preference_v3")

    assert await tier.get("locale_preference_v3") is None
    header = tier.headers()["locale_preference_v3"]
    assert "Max-Age=0" in header
    assert "Path=/" in header


@pytest.mark.asyncio
async def test_cookie_tier_availability_check_leaves_no_header():
    tier = CookieStorageTier()
    assert await tier.probe() is True
    assert tier.headers() == {}
