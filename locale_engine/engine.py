"""The locale engine: one constructed object owning every piece of shared state."""
import asyncio
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from locale_engine.analytics.events import AnalyticsEvent
from locale_engine.analytics.sinks import AnalyticsSink, HttpSink, LoggingSink
from locale_engine.analytics.tracker import AnalyticsTracker
from locale_engine.config import EngineConfig
from locale_engine.detection.chain import DetectionChain
from locale_engine.detection.negotiation import parse_accept_language
from locale_engine.detection.strategies import (
    ClientLanguageStrategy,
    DefaultStrategy,
    PathStrategy,
    PersistedPreferenceStrategy,
)
from locale_engine.locales import paths
from locale_engine.locales.models import DetectionResult, ValidationOutcome
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.locales.validation import validate_locale_code
from locale_engine.observers import Listener, LocaleChangeNotifier
from locale_engine.persistence.manager import PersistenceManager
from locale_engine.persistence.models import PersistedPreference
from locale_engine.persistence.tiers import (
    CookieStorageTier,
    InMemoryStorageTier,
    SqlStorageTier,
    StorageTier,
)
from locale_engine.pipeline.orchestrator import PipelineOrchestrator
from locale_engine.pipeline.stages import (
    LoopGuardStage,
    ProtectionStage,
    RedirectPolicyStage,
    ValidationStage,
)
from locale_engine.policy.evaluator import RedirectPolicyEvaluator
from locale_engine.policy.loop_guard import LoopGuard
from locale_engine.policy.models import PipelineContext, PipelineResult
from locale_engine.utils.decorators import log_execution
from locale_engine.utils.logging import get_logger

logger = get_logger(__name__)


def build_default_tiers(config: EngineConfig) -> List[StorageTier]:
    """Durable -> session -> legacy cookie, as enabled in configuration."""
    settings = config.persistence
    tiers: List[StorageTier] = []
    if settings.durable_enabled:
        tiers.append(SqlStorageTier(settings.durable_url))
    if settings.session_enabled:
        tiers.append(InMemoryStorageTier("session"))
    if settings.cookie_enabled:
        tiers.append(CookieStorageTier(max_age=settings.cookie_max_age_seconds, path=settings.cookie_path))
    return tiers


def build_default_sinks(config: EngineConfig) -> List[AnalyticsSink]:
    settings = config.analytics
    sinks: List[AnalyticsSink] = [LoggingSink()]
    if settings.endpoint_url:
        sinks.append(
            HttpSink(
                settings.endpoint_url,
                headers=settings.endpoint_headers,
                timeout=settings.flush_timeout_seconds,
            )
        )
    return sinks


class LocaleEngine:
    """
    Resolves the locale for a navigation and decides whether to redirect.

    Usage:
        async with LocaleEngine(EngineConfig.from_yaml()) as engine:
            result = await engine.resolve("/user/dashboard", client_languages=["zh-TW", "en"])
            if result.should_redirect:
                ...
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        tiers: Optional[Sequence[StorageTier]] = None,
        sinks: Optional[Iterable[AnalyticsSink]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or EngineConfig()
        self._clock = clock or time.time
        cfg = self.config

        self.registry = LocaleRegistry.from_settings(cfg.locales)
        self.notifier = LocaleChangeNotifier()
        self.tracker = AnalyticsTracker(
            sinks=build_default_sinks(cfg) if sinks is None else sinks,
            batch_size=cfg.analytics.batch_size,
            max_events=cfg.analytics.max_events,
            flush_timeout=cfg.analytics.flush_timeout_seconds,
            enabled=cfg.analytics.enabled,
            clock=self._clock,
        )
        self.persistence = PersistenceManager(
            build_default_tiers(cfg) if tiers is None else tiers,
            self.registry,
            cfg.persistence,
            notifier=self.notifier,
            clock=self._clock,
        )
        self.detection = DetectionChain(
            [
                PathStrategy(self.registry),
                PersistedPreferenceStrategy(
                    self.persistence,
                    self.registry,
                    max_age_seconds=cfg.detection.persisted_max_age_hours * 3600,
                    clock=self._clock,
                ),
                ClientLanguageStrategy(self.registry),
                DefaultStrategy(self.registry),
            ],
            self.registry,
            tracker=self.tracker,
            report_detections=cfg.detection.analytics_enabled,
            clock=self._clock,
        )
        self.evaluator = RedirectPolicyEvaluator(self.registry, cfg.protection)
        self.loop_guard = LoopGuard(
            window=cfg.loop_guard.window_seconds,
            sub_window=cfg.loop_guard.sub_window_seconds,
            threshold=cfg.loop_guard.threshold,
            clock=self._clock,
        )
        self.pipeline = PipelineOrchestrator(
            [
                ProtectionStage(self.evaluator),
                ValidationStage(self.registry, cfg.validation),
                RedirectPolicyStage(self.evaluator, self.detection),
            ],
            LoopGuardStage(self.loop_guard),
            self.registry,
            cfg.pipeline,
            tracker=self.tracker,
            clock=self._clock,
        )

        self._initialized = False
        self._tasks: List[asyncio.Task] = []

    # Lifecycle

    @log_execution()
    async def initialize(self) -> None:
        """Probe storage tiers, migrate legacy keys and warm the pipeline up."""
        if self._initialized:
            return
        self._initialized = True
        await self.persistence.initialize()
        await self.resolve("/", warmup=True)

    async def start(self) -> None:
        """Initialize and launch the cache sweep and analytics flush timers."""
        await self.initialize()
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._sweep_loop(), name="locale-engine-sweep"),
            loop.create_task(self._flush_loop(), name="locale-engine-flush"),
        ]
        logger.info("Locale engine background tasks started")

    async def stop(self) -> None:
        """Cancel background tasks and flush pending analytics."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.tracker.wait_pending()
        await self.tracker.flush()
        logger.info("Locale engine stopped")

    async def __aenter__(self) -> "LocaleEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _sweep_loop(self) -> None:
        interval = self.config.pipeline.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if any(removed.values()):
                logger.debug(f"Swept expired cache entries: {removed}")

    async def _flush_loop(self) -> None:
        interval = self.config.analytics.flush_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.tracker.flush()
            except Exception as e:
                logger.error(f"Periodic analytics flush failed: {e}")

    def sweep(self) -> Dict[str, int]:
        """Remove expired entries from every cache the engine owns."""
        return {
            "pipeline": self.pipeline.cleanup_expired(),
            "persistence": self.persistence.cleanup_expired(),
            "loop_guard": self.loop_guard.cleanup_expired(),
        }

    # Resolution

    async def resolve(
        self,
        path: str,
        client_languages: Optional[Sequence[str]] = None,
        permissions: Optional[Iterable[str]] = None,
        identity: Optional[str] = None,
        locale: Optional[str] = None,
        navigation_options: Optional[Mapping[str, Any]] = None,
        accept_language: Optional[str] = None,
        warmup: bool = False,
    ) -> PipelineResult:
        """
        Decide the locale and action for a navigation.

        Args:
            path: Requested path
            client_languages: Client language preferences, most preferred first
            permissions: Caller permission set, for protected routes
            identity: Caller identity signal, part of the cache key
            locale: Locale the caller currently uses, tried before client languages
            navigation_options: Opaque options passed through to stages
            accept_language: Raw Accept-Language header, appended to client_languages
            warmup: Internal warm-up run; not cached, not loop-guarded

        Returns:
            PipelineResult
        """
        if not self._initialized:
            await self.initialize()

        languages = list(client_languages or ()) + parse_accept_language(accept_language)
        context = PipelineContext(
            path=path or "/",
            permissions=frozenset(permissions or ()),
            client_languages=tuple(languages),
            identity=identity,
            locale=locale,
            navigation_options=dict(navigation_options or {}),
            timestamp=self._clock(),
            warmup=warmup,
        )
        return await self.pipeline.execute(context)

    async def detect(
        self,
        path: str,
        client_languages: Optional[Sequence[str]] = None,
        accept_language: Optional[str] = None,
    ) -> DetectionResult:
        if not self._initialized:
            await self.initialize()
        languages = list(client_languages or ()) + parse_accept_language(accept_language)
        return await self.detection.detect(path, languages)

    def validate(
        self, token: str, allow_fallback: Optional[bool] = None, strict: Optional[bool] = None
    ) -> ValidationOutcome:
        settings = self.config.validation
        return validate_locale_code(
            token,
            self.registry,
            allow_fallback=settings.allow_fallback if allow_fallback is None else allow_fallback,
            strict=settings.strict if strict is None else strict,
        )

    # Paths

    def to_localized_path(self, path: str, locale: str) -> str:
        return paths.to_localized_path(path, locale, self.registry)

    def extract_locale(self, path: str) -> Optional[str]:
        return paths.extract_locale(path, self.registry)

    def strip_locale(self, path: str) -> str:
        return paths.strip_locale(path, self.registry)

    def localized_paths(self, path: str) -> List[str]:
        return paths.localized_paths(path, self.registry)

    # Preferences

    async def set_preference(
        self, locale: str, source: str = "user", metadata: Optional[Dict[str, Any]] = None
    ) -> PersistedPreference:
        preference = await self.persistence.save_preference(locale, source=source, metadata=metadata)
        self._preference_changed(preference)
        return preference

    async def get_preference(self) -> Optional[PersistedPreference]:
        return await self.persistence.load_preference()

    async def clear_preference(self) -> None:
        await self.persistence.clear_preference()
        self.pipeline.clear_cache()

    async def set_user_override(self, locale: str, temporary: bool = False) -> PersistedPreference:
        override = await self.persistence.set_user_override(locale, temporary=temporary)
        self._preference_changed(override)
        return override

    async def clear_user_override(self) -> None:
        await self.persistence.clear_user_override()
        self.pipeline.clear_cache()

    def _preference_changed(self, preference: PersistedPreference) -> None:
        # Cached decisions may have been negotiated from the old preference
        self.pipeline.clear_cache()
        self.tracker.track(
            AnalyticsEvent(
                type="preference",
                path=None,
                locale=preference.locale,
                result=preference.source,
                timestamp=preference.timestamp,
                properties=dict(preference.metadata),
            )
        )

    # Observers

    def add_listener(self, listener: Listener) -> None:
        self.notifier.add(listener)

    def remove_listener(self, listener: Listener) -> bool:
        return self.notifier.remove(listener)

    # Introspection

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "pipeline": self.pipeline.statistics(),
            "loop_guard": self.loop_guard.statistics(),
            "persistence": self.persistence.statistics(),
            "detection": self.detection.statistics(),
            "analytics": self.tracker.get_stats(),
            "listeners": len(self.notifier),
        }
