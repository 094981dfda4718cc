"""End-to-end tests for LocaleEngine."""
import pytest

from locale_engine.config import EngineConfig, ValidationSettings
from locale_engine.engine import LocaleEngine, build_default_tiers
from locale_engine.persistence.tiers import CookieStorageTier, InMemoryStorageTier, SqlStorageTier
from locale_engine.policy.models import Action


@pytest.mark.asyncio
async def test_missing_prefix_redirects_to_negotiated_locale(make_engine):
    engine = make_engine()
    result = await engine.resolve("/user/dashboard", client_languages=["zh-TW", "en"])

    assert result.action == Action.REDIRECT
    assert result.should_redirect
    assert result.redirect_target == "/zh-TC/user/dashboard"
    assert result.status_code == 303
    assert result.reason == "no-locale"
    assert result.locale == "zh-TC"


@pytest.mark.asyncio
async def test_empty_leading_segment_keeps_rest_of_path(make_engine):
    result = await make_engine().resolve("//trading/BTC", client_languages=["ja"])

    assert result.action == Action.REDIRECT
    assert result.redirect_target == "/ja/trading/BTC"
    assert result.metadata["redirect"]["to_path"] == "/ja/trading/BTC"
    assert result.reason == "no-locale"


@pytest.mark.asyncio
async def test_unknown_prefix_redirects_to_default(make_engine):
    result = await make_engine().resolve("/xx/trading/BTC")

    assert result.action == Action.REDIRECT
    assert result.redirect_target == "/en/trading/BTC"
    assert result.status_code == 301
    assert result.reason == "invalid-locale"
    assert result.metadata["validation_issues"] == ["unsupported locale: xx, using fallback en"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/admin/panel", "/ja/admin/panel", "/xx/admin/panel"])
async def test_protected_route_is_blocked(make_engine, path):
    result = await make_engine().resolve(path, permissions={"user"})

    assert result.action == Action.BLOCK
    assert result.should_block
    assert not result.should_proceed
    assert result.metadata["required_permissions"] == ["admin"]


@pytest.mark.asyncio
async def test_regional_fallback_beats_client_languages(make_engine):
    result = await make_engine().resolve("/zh-SG/x", client_languages=["ja"])

    assert result.redirect_target == "/zh-CN/x"
    assert result.status_code == 301
    assert result.reason == "fallback"


@pytest.mark.asyncio
async def test_alias_prefix_is_corrected(make_engine):
    result = await make_engine().resolve("/zh-cn/markets")

    assert result.action == Action.CORRECT
    assert result.should_redirect
    assert result.redirect_target == "/zh-CN/markets"
    assert result.status_code == 301
    assert result.reason == "non-canonical"


@pytest.mark.asyncio
async def test_deprecated_prefix_is_redirected(make_engine):
    result = await make_engine().resolve("/zh/news")

    assert result.redirect_target == "/zh-CN/news"
    assert result.reason == "deprecated-locale"


@pytest.mark.asyncio
async def test_canonical_prefix_passes(make_engine):
    result = await make_engine().resolve("/ja/trading/BTC", client_languages=["ko"])

    assert result.action == Action.PASS
    assert result.should_proceed
    assert result.locale == "ja"
    assert result.redirect_target is None


@pytest.mark.asyncio
async def test_strict_mode_blocks_malformed_prefix(make_engine):
    engine = make_engine(EngineConfig(validation=ValidationSettings(strict=True)))
    result = await engine.resolve("/en-1234/x")

    assert result.action == Action.BLOCK
    assert result.error["type"] == "invalid_language"


@pytest.mark.asyncio
async def test_disabled_fallback_blocks_unsupported_prefix(make_engine):
    engine = make_engine(EngineConfig(validation=ValidationSettings(allow_fallback=False)))
    result = await engine.resolve("/xx/x")

    assert result.action == Action.BLOCK
    assert result.error["type"] == "unsupported_language"


@pytest.mark.asyncio
async def test_redirect_loop_is_broken(make_engine, clock):
    engine = make_engine()

    for _ in range(3):
        result = await engine.resolve("/user/dashboard", client_languages=["ja"])
        assert result.action == Action.REDIRECT

    result = await engine.resolve("/user/dashboard", client_languages=["ja"])
    assert result.action == Action.PASS
    assert result.redirect_target is None
    assert result.metadata["warning"]["type"] == "redirect_loop"
    assert result.metadata["suppressed_redirect"] == "/ja/user/dashboard"
    assert engine.get_statistics()["loop_guard"]["blocked"] == 1

    clock.advance(11)
    result = await engine.resolve("/user/dashboard", client_languages=["ja"])
    assert result.action == Action.REDIRECT
    assert result.redirect_target == "/ja/user/dashboard"


@pytest.mark.asyncio
async def test_preference_change_invalidates_cached_decisions(make_engine):
    engine = make_engine()
    assert (await engine.resolve("/x")).redirect_target == "/en/x"

    await engine.set_preference("ko")
    assert (await engine.resolve("/x")).redirect_target == "/ko/x"

    await engine.clear_preference()
    assert (await engine.resolve("/x")).redirect_target == "/en/x"


@pytest.mark.asyncio
async def test_temporary_override(make_engine):
    engine = make_engine()
    await engine.set_preference("ko")
    await engine.set_user_override("ru", temporary=True)
    assert (await engine.resolve("/x")).redirect_target == "/ru/x"

    await engine.clear_user_override()
    assert (await engine.resolve("/x")).redirect_target == "/ko/x"


@pytest.mark.asyncio
async def test_caller_locale_and_accept_language(make_engine):
    engine = make_engine()
    assert (await engine.resolve("/x", ["ja"], locale="ko")).redirect_target == "/ko/x"
    assert (await engine.resolve("/y", accept_language="ru;q=0.9, fr")).redirect_target == "/ru/y"


@pytest.mark.asyncio
async def test_listeners(make_engine):
    engine = make_engine()
    seen = []
    listener = seen.append
    engine.add_listener(listener)

    await engine.set_preference("ja")
    assert [(e.locale, e.source) for e in seen] == [("ja", "user")]
    assert engine.get_statistics()["listeners"] == 1

    assert engine.remove_listener(listener) is True
    await engine.set_preference("ko")
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_unavailable_storage_degrades_to_memory(make_engine, broken_tier):
    engine = make_engine(tiers=[broken_tier("durable"), broken_tier("session")])

    await engine.set_preference("ja")
    assert (await engine.get_preference()).locale == "ja"
    assert engine.get_statistics()["persistence"]["tiers"] == {"durable": False, "session": False}


@pytest.mark.asyncio
async def test_path_helpers(make_engine):
    engine = make_engine()
    assert engine.to_localized_path("/trading/BTC", "ja") == "/ja/trading/BTC"
    assert engine.extract_locale("/zh-TC/news") == "zh-TC"
    assert engine.strip_locale("/zh-TC/news") == "/news"
    assert engine.localized_paths("/")[0] == "/en"
    assert engine.validate("zh_cn").normalized == "zh-CN"


@pytest.mark.asyncio
async def test_context_manager_flushes_on_exit(make_engine, sink):
    engine = make_engine()
    async with engine:
        assert len(engine._tasks) == 2
        await engine.resolve("/ja/news")

    assert engine._tasks == []
    assert engine.tracker.pending == 0
    assert sink.of_type("pipeline")


@pytest.mark.asyncio
async def test_start_is_idempotent(make_engine):
    engine = make_engine()
    await engine.start()
    tasks = list(engine._tasks)
    await engine.start()
    assert engine._tasks == tasks
    await engine.stop()


@pytest.mark.asyncio
async def test_sweep_and_statistics(make_engine, clock):
    engine = make_engine()
    await engine.resolve("/ja/news")
    await engine.resolve("/x")
    clock.advance(3600)

    removed = engine.sweep()
    assert removed["pipeline"] == 2
    assert removed["loop_guard"] == 1

    stats = engine.get_statistics()
    assert set(stats) == {"pipeline", "loop_guard", "persistence", "detection", "analytics", "listeners"}
    assert stats["pipeline"]["executions"] == 3


def test_default_tiers_follow_configuration():
    config = EngineConfig()
    config.persistence.durable_url = "sqlite://"
    tiers = build_default_tiers(config)
    assert [type(t) for t in tiers] == [SqlStorageTier, InMemoryStorageTier, CookieStorageTier]

    config.persistence.durable_enabled = False
    config.persistence.cookie_enabled = False
    assert [t.name for t in build_default_tiers(config)] == ["session"]


@pytest.mark.asyncio
async def test_engine_from_yaml(temp_config_file, sink):
    engine = LocaleEngine(EngineConfig.from_yaml(temp_config_file), sinks=[sink])
    assert engine.registry.codes() == ["en", "ja", "zh-CN"]

    result = await engine.resolve("/ja-JP/x")
    assert result.redirect_target == "/ja/x"
    assert result.reason == "fallback"
    await engine.stop()
