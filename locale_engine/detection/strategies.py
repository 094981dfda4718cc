"""Detection strategies, tried in priority order by the DetectionChain."""
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from locale_engine.locales.models import DetectionResult, DetectionSource
from locale_engine.locales.paths import parse_prefix
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.locales.validation import normalize_locale_code
from locale_engine.persistence.manager import PersistenceManager

# Confidence by client match tier, before the per-position penalty
CLIENT_CONFIDENCE = {"exact": 0.7, "pattern": 0.6, "family": 0.5}
POSITION_PENALTY = 0.05
MIN_CLIENT_CONFIDENCE = 0.05


class DetectionStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    async def detect(self, path: str, client_languages: Sequence[str]) -> Optional[DetectionResult]:
        """Return a result, or None to let the next strategy try."""


class PathStrategy(DetectionStrategy):
    """Locale embedded in the first path segment."""

    name = "path"

    def __init__(self, registry: LocaleRegistry):
        self.registry = registry

    async def detect(self, path, client_languages):
        match = parse_prefix(path, self.registry)
        if match.kind == "canonical":
            return DetectionResult(match.locale, DetectionSource.PATH, 1.0, match.token, "exact")
        if match.kind in ("alias", "deprecated"):
            return DetectionResult(match.locale, DetectionSource.PATH, 0.9, match.token, match.kind)
        return None


class PersistedPreferenceStrategy(DetectionStrategy):
    """Active user override first, then the stored preference if fresh enough."""

    name = "persisted"

    def __init__(
        self,
        persistence: PersistenceManager,
        registry: LocaleRegistry,
        max_age_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.persistence = persistence
        self.registry = registry
        self.max_age_seconds = max_age_seconds
        self._clock = clock

    async def detect(self, path, client_languages):
        override = await self.persistence.get_user_override()
        if override is not None and self.registry.is_supported(override.locale):
            return DetectionResult(
                self.registry.get(override.locale), DetectionSource.PERSISTED, 0.8, override.locale, "override"
            )

        preference = await self.persistence.load_preference()
        if preference is None:
            return None
        if self._clock() - preference.timestamp > self.max_age_seconds:
            return None
        locale = self.registry.get(preference.locale)
        if locale is None:
            return None
        return DetectionResult(locale, DetectionSource.PERSISTED, 0.8, preference.locale, "exact")


class ClientLanguageStrategy(DetectionStrategy):
    """
    Negotiate against the client's language list.

    Each tag is tried for an exact match, then a regional pattern (or a
    deprecated code), then its language family's main variant. The first tag
    with any match wins; confidence drops with its position in the list.
    """

    name = "client"

    def __init__(self, registry: LocaleRegistry):
        self.registry = registry

    async def detect(self, path, client_languages):
        for position, tag in enumerate(client_languages or ()):
            if not tag:
                continue
            normalized = normalize_locale_code(tag)

            locale, tier = self.registry.get(normalized), "exact"
            if locale is None:
                locale, tier = self.registry.match_client_pattern(tag), "pattern"
            if locale is None:
                locale = self.registry.deprecated_target(normalized)
            if locale is None:
                locale, tier = self.registry.main_variant(normalized.split("-")[0]), "family"
            if locale is None:
                continue

            confidence = max(CLIENT_CONFIDENCE[tier] - POSITION_PENALTY * position, MIN_CLIENT_CONFIDENCE)
            return DetectionResult(locale, DetectionSource.CLIENT, round(confidence, 2), tag, tier)
        return None


class DefaultStrategy(DetectionStrategy):
    name = "default"

    def __init__(self, registry: LocaleRegistry):
        self.registry = registry

    async def detect(self, path, client_languages):
        return DetectionResult(self.registry.default, DetectionSource.DEFAULT, 0.0, None, "default")
