"""Tiered persistence of the current locale preference."""
import asyncio
import json
import time
from typing import TYPE_CHECKING, Any, Callable, Collection, Dict, List, Optional, Sequence

from locale_engine.cache import TTLCache
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.locales.validation import normalize_locale_code
from locale_engine.observers import LocaleChangeEvent, LocaleChangeNotifier
from locale_engine.persistence.models import PersistedPreference, TierWriteResult
from locale_engine.persistence.tiers import StorageTier
from locale_engine.utils.decorators import timeout
from locale_engine.utils.errors import UnsupportedLocaleError
from locale_engine.utils.logging import get_logger

if TYPE_CHECKING:
    from locale_engine.config import PersistenceSettings

logger = get_logger(__name__)

OVERRIDE_SOURCE = "user-override"


class PersistenceManager:
    """
    Reads and writes locale state across an ordered list of storage tiers.

    An in-process memory cache sits in front of the tiers. Tiers are probed
    once on first use; a tier that fails its probe is skipped for the rest of
    the process. With no tier available the memory cache keeps values without
    expiry, so the engine keeps working memory-only.
    """

    def __init__(
        self,
        tiers: Sequence[StorageTier],
        registry: LocaleRegistry,
        settings: "PersistenceSettings",
        notifier: Optional[LocaleChangeNotifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.tiers = list(tiers)
        self.registry = registry
        self.settings = settings
        self.notifier = notifier or LocaleChangeNotifier()
        self._clock = clock
        self._cache: TTLCache[str] = TTLCache(default_ttl=settings.memory_ttl_seconds, clock=clock)
        self._available: Dict[str, bool] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self.migration_status = "pending"
        self.migrated_keys: List[str] = []

    # Lifecycle

    async def initialize(self) -> None:
        """Probe tiers and migrate legacy keys, once."""
        async with self._init_lock:
            if self._initialized:
                return
            await self.probe_tiers()
            self._initialized = True
            await self._run_migration()

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def probe_tiers(self) -> Dict[str, bool]:
        results = await asyncio.gather(*(tier.probe() for tier in self.tiers))
        self._available = {tier.name: ok for tier, ok in zip(self.tiers, results)}
        logger.info(f"Storage tier capabilities: {self._available}")
        return dict(self._available)

    def available_tiers(self) -> List[StorageTier]:
        return [t for t in self.tiers if self._available.get(t.name, False)]

    def _memory_ttl(self) -> Optional[float]:
        return self.settings.memory_ttl_seconds if self.available_tiers() else None

    # Key/value operations

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_initialized()
        return await self._get(key)

    async def set(
        self, key: str, value: str, only: Optional[Collection[str]] = None
    ) -> List[TierWriteResult]:
        """
        Write to the memory cache, then to every available tier.

        Args:
            key: Storage key
            value: Serialized value
            only: Restrict tier writes to these tier names

        Returns:
            One report per attempted tier; partial failure is not an error
        """
        await self._ensure_initialized()
        return await self._set(key, value, only)

    async def remove(self, key: str) -> None:
        await self._ensure_initialized()
        await self._remove(key)

    async def _get(self, key: str) -> Optional[str]:
        entry = self._cache.get_entry(key)
        if entry is not None:
            return entry.value

        for tier in self.available_tiers():
            try:
                value = await tier.get(key)
            except Exception as e:
                logger.warning(f"Read from tier {tier.name} failed: {e}", extra={"tier": tier.name})
                continue
            if value is not None:
                self._cache.set(key, value, ttl=self._memory_ttl())
                return value
        return None

    async def _set(
        self, key: str, value: str, only: Optional[Collection[str]] = None
    ) -> List[TierWriteResult]:
        self._cache.set(key, value, ttl=self._memory_ttl())

        targets = [t for t in self.available_tiers() if only is None or t.name in only]
        outcomes = await asyncio.gather(*(t.set(key, value) for t in targets), return_exceptions=True)

        reports = []
        for tier, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Write to tier {tier.name} failed: {outcome}", extra={"tier": tier.name})
                reports.append(TierWriteResult(tier=tier.name, success=False, error=str(outcome)))
            else:
                reports.append(TierWriteResult(tier=tier.name, success=True))
        return reports

    async def _remove(self, key: str) -> None:
        self._cache.delete(key)
        targets = self.available_tiers()
        outcomes = await asyncio.gather(*(t.remove(key) for t in targets), return_exceptions=True)
        for tier, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Remove from tier {tier.name} failed: {outcome}", extra={"tier": tier.name})

    # Preference

    async def save_preference(
        self, locale: str, source: str = "user", metadata: Optional[Dict[str, Any]] = None
    ) -> PersistedPreference:
        if not self.registry.is_supported(locale):
            raise UnsupportedLocaleError(
                f"Cannot persist unsupported locale: {locale}", {"locale": locale}
            )
        previous = await self.load_preference()
        preference = PersistedPreference(
            locale=locale, source=source, timestamp=self._clock(), metadata=dict(metadata or {})
        )
        await self.set(self.settings.preference_key, preference.to_json())
        await self._notify(preference, previous.locale if previous else None)
        return preference

    async def load_preference(self) -> Optional[PersistedPreference]:
        raw = await self.get(self.settings.preference_key)
        return PersistedPreference.from_json(raw) if raw else None

    async def clear_preference(self) -> None:
        await self.remove(self.settings.preference_key)

    # User override

    async def set_user_override(self, locale: str, temporary: bool = False) -> PersistedPreference:
        """
        Force a locale for this user.

        A temporary override lives in memory and the session tier only. A
        permanent one replaces the stored preference.
        """
        if not temporary:
            await self.clear_user_override()
            return await self.save_preference(locale, source=OVERRIDE_SOURCE)

        if not self.registry.is_supported(locale):
            raise UnsupportedLocaleError(f"Cannot override with unsupported locale: {locale}", {"locale": locale})
        previous = await self.get_user_override()
        override = PersistedPreference(
            locale=locale, source=OVERRIDE_SOURCE, timestamp=self._clock(), metadata={"temporary": True}
        )
        await self.set(self.settings.override_key, override.to_json(), only=("session",))
        await self._notify(override, previous.locale if previous else None)
        return override

    async def get_user_override(self) -> Optional[PersistedPreference]:
        raw = await self.get(self.settings.override_key)
        return PersistedPreference.from_json(raw) if raw else None

    async def clear_user_override(self) -> None:
        await self.remove(self.settings.override_key)

    async def _notify(self, preference: PersistedPreference, previous: Optional[str]) -> None:
        event = LocaleChangeEvent(
            locale=preference.locale,
            previous=previous,
            source=preference.source,
            timestamp=preference.timestamp,
            metadata=dict(preference.metadata),
        )
        await self.notifier.notify(event)

    # Legacy migration

    async def _run_migration(self) -> None:
        migrate = timeout(self.settings.migration_timeout_seconds)(self._migrate_legacy)
        try:
            self.migrated_keys = await migrate()
            self.migration_status = "completed"
        except TimeoutError:
            self.migration_status = "timed_out"
            logger.warning("Legacy preference migration timed out; continuing without it")
        except Exception as e:
            self.migration_status = "failed"
            logger.error(f"Legacy preference migration failed: {e}")

    async def _migrate_legacy(self) -> List[str]:
        canonical = await self._get(self.settings.preference_key)
        migrated: List[str] = []
        for legacy_key in self.settings.legacy_keys:
            if canonical is not None:
                break
            raw = await self._get(legacy_key)
            if raw is None:
                continue
            locale = self._legacy_locale(raw)
            if locale is None:
                logger.warning(f"Ignoring unreadable legacy preference under {legacy_key!r}")
                continue
            preference = PersistedPreference(
                locale=locale,
                source="migration",
                timestamp=self._clock(),
                metadata={"legacy_key": legacy_key},
            )
            canonical = preference.to_json()
            await self._set(self.settings.preference_key, canonical)
            await self._remove(legacy_key)
            migrated.append(legacy_key)
            logger.info(f"Migrated legacy preference {legacy_key!r} -> {locale}", extra={"locale": locale})
        return migrated

    def _legacy_locale(self, raw: str) -> Optional[str]:
        """Locale carried by a legacy value: a bare code or a JSON object."""
        token: Any = raw
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if isinstance(data, dict):
            token = data.get("locale") or data.get("language") or data.get("lang")
        elif isinstance(data, str):
            token = data
        if not isinstance(token, str) or not token:
            return None

        code = normalize_locale_code(token)
        if self.registry.is_supported(code):
            return code
        target = self.registry.deprecated_target(code)
        return target.code if target is not None else None

    # Maintenance

    def cleanup_expired(self) -> int:
        return self._cache.cleanup_expired()

    def statistics(self) -> Dict[str, Any]:
        return {
            "tiers": {t.name: self._available.get(t.name, False) for t in self.tiers},
            "cache_size": len(self._cache),
            "migration_status": self.migration_status,
            "migrated_keys": list(self.migrated_keys),
        }
