"""Tests for the tiered persistence manager."""
import asyncio
import json

import pytest

from locale_engine.config import PersistenceSettings
from locale_engine.observers import LocaleChangeNotifier
from locale_engine.persistence.manager import PersistenceManager
from locale_engine.persistence.tiers import InMemoryStorageTier
from locale_engine.utils.errors import UnsupportedLocaleError


class SlowLegacyTier(InMemoryStorageTier):
    """Answers probes quickly but hangs on legacy keys."""

    async def get(self, key):
        if key == "locale":
            await asyncio.sleep(5)
        return await super().get(key)


def make_manager(registry, clock, tiers, **settings):
    return PersistenceManager(tiers, registry, PersistenceSettings(**settings), clock=clock)


@pytest.mark.asyncio
async def test_get_reads_tiers_in_order_and_caches(registry, clock):
    durable, session = InMemoryStorageTier("durable"), InMemoryStorageTier("session")
    await session.set("k", "from-session")
    manager = make_manager(registry, clock, [durable, session])

    assert await manager.get("k") == "from-session"

    # Served from the memory cache until its TTL runs out
    await session.set("k", "changed")
    assert await manager.get("k") == "from-session"
    clock.advance(301)
    assert await manager.get("k") == "changed"


@pytest.mark.asyncio
async def test_set_writes_every_available_tier(registry, clock, broken_tier):
    durable, session = InMemoryStorageTier("durable"), InMemoryStorageTier("session")
    manager = make_manager(registry, clock, [durable, broken_tier("cookie"), session])

    reports = await manager.set("k", "v")

    assert {r.tier: r.success for r in reports} == {"durable": True, "session": True}
    assert await durable.get("k") == "v"
    assert await session.get("k") == "v"
    assert manager.statistics()["tiers"] == {"durable": True, "cookie": False, "session": True}


@pytest.mark.asyncio
async def test_partial_write_failure_is_reported_not_raised(registry, clock):
    flaky = InMemoryStorageTier("durable")
    manager = make_manager(registry, clock, [flaky, InMemoryStorageTier("session")])
    await manager.initialize()

    async def fail(key, value):
        raise OSError("quota exceeded")

    flaky.set = fail
    reports = await manager.set("k", "v")

    assert [(r.tier, r.success) for r in reports] == [("durable", False), ("session", True)]
    assert "quota exceeded" in reports[0].error
    assert await manager.get("k") == "v"


@pytest.mark.asyncio
async def test_remove_clears_memory_and_tiers(registry, clock):
    durable, session = InMemoryStorageTier("durable"), InMemoryStorageTier("session")
    manager = make_manager(registry, clock, [durable, session])
    await manager.set("k", "v")

    await manager.remove("k")

    assert await manager.get("k") is None
    assert await durable.get("k") is None
    assert await session.get("k") is None


@pytest.mark.asyncio
async def test_memory_only_when_no_tier_is_available(registry, clock, broken_tier):
    tiers = [broken_tier("durable"), broken_tier("session")]
    manager = make_manager(registry, clock, tiers)

    reports = await manager.set("k", "v")
    assert reports == []
    calls = sum(t.calls for t in tiers)

    clock.advance(10 * 3600)
    assert await manager.get("k") == "v"
    # Unavailable tiers are never touched again after probing
    assert sum(t.calls for t in tiers) == calls


@pytest.mark.asyncio
async def test_save_and_load_preference(registry, clock):
    manager = make_manager(registry, clock, [InMemoryStorageTier("durable")])

    saved = await manager.save_preference("ja", metadata={"origin": "settings"})
    loaded = await manager.load_preference()

    assert loaded == saved
    assert loaded.locale == "ja"
    assert loaded.source == "user"
    assert loaded.timestamp == clock.now
    assert loaded.metadata == {"origin": "settings"}

    await manager.clear_preference()
    assert await manager.load_preference() is None


@pytest.mark.asyncio
async def test_save_unsupported_preference_raises(registry, clock):
    manager = make_manager(registry, clock, [])
    with pytest.raises(UnsupportedLocaleError):
        await manager.save_preference("xx")


@pytest.mark.asyncio
async def test_listeners_are_notified_and_isolated(registry, clock):
    notifier = LocaleChangeNotifier()
    seen = []

    def failing(event):
        raise RuntimeError("listener bug")

    async def recording(event):
        seen.append((event.locale, event.previous, event.source))

    notifier.add(failing)
    notifier.add(recording)
    manager = PersistenceManager([], registry, PersistenceSettings(), notifier=notifier, clock=clock)

    await manager.save_preference("ja")
    await manager.save_preference("ko")

    assert seen == [("ja", None, "user"), ("ko", "ja", "user")]


@pytest.mark.asyncio
async def test_temporary_override_stays_out_of_durable_tier(registry, clock):
    durable, session = InMemoryStorageTier("durable"), InMemoryStorageTier("session")
    manager = make_manager(registry, clock, [durable, session])

    await manager.set_user_override("ru", temporary=True)

    assert (await manager.get_user_override()).locale == "ru"
    assert await durable.get("locale_override_v3") is None
    assert await session.get("locale_override_v3") is not None
    assert await manager.load_preference() is None


@pytest.mark.asyncio
async def test_permanent_override_replaces_preference(registry, clock):
    manager = make_manager(registry, clock, [InMemoryStorageTier("durable")])
    await manager.set_user_override("ru", temporary=True)

    await manager.set_user_override("ko")

    assert await manager.get_user_override() is None
    preference = await manager.load_preference()
    assert (preference.locale, preference.source) == ("ko", "user-override")


@pytest.mark.asyncio
async def test_legacy_value_is_migrated(registry, clock):
    durable = InMemoryStorageTier("durable")
    await durable.set("locale", "zh_TW")
    manager = make_manager(registry, clock, [durable])

    await manager.initialize()

    preference = await manager.load_preference()
    assert preference.locale == "zh-TC"
    assert preference.source == "migration"
    assert preference.metadata == {"legacy_key": "locale"}
    assert await durable.get("locale") is None
    assert manager.statistics()["migration_status"] == "completed"
    assert manager.migrated_keys == ["locale"]


@pytest.mark.asyncio
async def test_legacy_json_value_is_migrated(registry, clock):
    session = InMemoryStorageTier("session")
    await session.set("locale_v2", json.dumps({"locale": "ja", "ts": 1}))
    manager = make_manager(registry, clock, [session])

    await manager.initialize()
    assert (await manager.load_preference()).locale == "ja"


@pytest.mark.asyncio
async def test_migration_keeps_existing_canonical_value(registry, clock):
    durable = InMemoryStorageTier("durable")
    manager = make_manager(registry, clock, [durable])
    await manager.save_preference("ko")

    fresh = make_manager(registry, clock, [durable])
    await durable.set("locale", "ja")
    await fresh.initialize()

    assert (await fresh.load_preference()).locale == "ko"
    assert await durable.get("locale") == "ja"
    assert fresh.migrated_keys == []


@pytest.mark.asyncio
async def test_migration_timeout_does_not_block_startup(registry, clock):
    tier = SlowLegacyTier("durable")
    await tier.set("locale", "ja")
    manager = make_manager(registry, clock, [tier], migration_timeout_seconds=0.05)

    await manager.initialize()

    assert manager.migration_status == "timed_out"
    assert await manager.load_preference() is None
    await manager.save_preference("ko")
    assert (await manager.load_preference()).locale == "ko"


@pytest.mark.asyncio
async def test_concurrent_first_use_initializes_once(registry, clock):
    tier = InMemoryStorageTier("durable")
    probes = 0
    original_probe = tier.probe

    async def counting_probe():
        nonlocal probes
        probes += 1
        return await original_probe()

    tier.probe = counting_probe
    manager = make_manager(registry, clock, [tier])

    await asyncio.gather(manager.get("a"), manager.get("b"), manager.set("c", "1"))
    assert probes == 1
