"""Supported locale set and the lookups every other component relies on."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple

from locale_engine.locales.defaults import (
    CLIENT_LANGUAGE_PATTERNS,
    DEFAULT_LOCALE,
    DEFAULT_LOCALES,
    DEPRECATED_CODES,
    REGIONAL_FALLBACKS,
)
from locale_engine.locales.models import Direction, LocaleCode
from locale_engine.utils.errors import ConfigurationError

if TYPE_CHECKING:
    from locale_engine.config import LocalesSettings

logger = logging.getLogger(__name__)


def _build_locale(definition: Mapping[str, Any]) -> LocaleCode:
    try:
        code = str(definition["code"])
    except KeyError:
        raise ConfigurationError("Locale definition without a code", {"definition": dict(definition)})
    fallback = definition.get("fallback")
    return LocaleCode(
        code=code,
        name=str(definition.get("name", code)),
        native_name=str(definition.get("native_name", "")),
        direction=Direction(definition.get("direction", "ltr")),
        fallback=str(fallback) if fallback else None,
        priority=int(definition.get("priority", 100)),
        is_main_variant=bool(definition.get("is_main_variant", True)),
        seo_code=definition.get("seo_code"),
        html_lang=definition.get("html_lang"),
        regions=tuple(definition.get("regions", ())),
    )


class LocaleRegistry:
    """
    Immutable view over the supported locales.

    The registry validates its own invariants on construction: the default
    locale is supported and has no fallback, every configured fallback names a
    supported locale, and following fallbacks always terminates at the default.
    A non-default locale without an explicit fallback falls back to the default.
    """

    def __init__(
        self,
        locales: Iterable[LocaleCode],
        default: str = DEFAULT_LOCALE,
        client_patterns: Optional[Mapping[str, Iterable[str]]] = None,
        deprecated: Optional[Mapping[str, str]] = None,
        regional_fallbacks: Optional[Mapping[str, str]] = None,
    ):
        self._locales: Dict[str, LocaleCode] = {}
        for locale in locales:
            if locale.code in self._locales:
                raise ConfigurationError(f"Duplicate locale code: {locale.code}")
            self._locales[locale.code] = locale

        self._default_code = default
        self._client_patterns: Dict[str, Tuple[str, ...]] = {
            code: tuple(p.lower() for p in patterns)
            for code, patterns in (client_patterns or {}).items()
        }
        self._deprecated: Dict[str, str] = dict(deprecated or {})
        self._regional_fallbacks: Dict[str, str] = dict(regional_fallbacks or {})
        self._aliases: Dict[str, str] = {loc.url_alias: loc.code for loc in self._locales.values()}

        self._validate()

    @classmethod
    def from_definitions(
        cls,
        definitions: Iterable[Mapping[str, Any]] = DEFAULT_LOCALES,
        default: str = DEFAULT_LOCALE,
        client_patterns: Optional[Mapping[str, Iterable[str]]] = None,
        deprecated: Optional[Mapping[str, str]] = None,
        regional_fallbacks: Optional[Mapping[str, str]] = None,
    ) -> "LocaleRegistry":
        return cls(
            [_build_locale(d) for d in definitions],
            default=default,
            client_patterns=CLIENT_LANGUAGE_PATTERNS if client_patterns is None else client_patterns,
            deprecated=DEPRECATED_CODES if deprecated is None else deprecated,
            regional_fallbacks=REGIONAL_FALLBACKS if regional_fallbacks is None else regional_fallbacks,
        )

    @classmethod
    def from_settings(cls, settings: "LocalesSettings") -> "LocaleRegistry":
        return cls.from_definitions(
            settings.definitions,
            default=settings.default,
            client_patterns=settings.client_patterns,
            deprecated=settings.deprecated,
            regional_fallbacks=settings.regional_fallbacks,
        )

    def _validate(self) -> None:
        if not self._locales:
            raise ConfigurationError("At least one locale must be configured")

        default = self._locales.get(self._default_code)
        if default is None:
            raise ConfigurationError(
                f"Default locale {self._default_code} is not in the supported set",
                {"supported": self.codes()},
            )
        if default.fallback is not None:
            raise ConfigurationError(f"Default locale {default.code} must not declare a fallback")

        for locale in self._locales.values():
            if locale.fallback is not None and locale.fallback not in self._locales:
                raise ConfigurationError(
                    f"Locale {locale.code} falls back to unsupported {locale.fallback}"
                )
            # Raises on cycles
            self.fallback_chain(locale.code)

        for alias, target in list(self._deprecated.items()):
            if target not in self._locales:
                logger.warning(f"Dropping deprecated mapping {alias} -> {target}: target not supported")
                del self._deprecated[alias]

    # Lookups

    @property
    def default(self) -> LocaleCode:
        return self._locales[self._default_code]

    def codes(self) -> List[str]:
        return list(self._locales)

    def all(self) -> List[LocaleCode]:
        return list(self._locales.values())

    def get(self, code: Optional[str]) -> Optional[LocaleCode]:
        if not code:
            return None
        return self._locales.get(code)

    def is_supported(self, code: Optional[str]) -> bool:
        return bool(code) and code in self._locales

    def __contains__(self, code: str) -> bool:
        return self.is_supported(code)

    def __len__(self) -> int:
        return len(self._locales)

    def by_alias(self, token: str) -> Optional[LocaleCode]:
        """Locale whose SEO alias equals `token` (case-insensitive)."""
        code = self._aliases.get(token.lower())
        return self._locales.get(code) if code else None

    def main_variant(self, language: str) -> Optional[LocaleCode]:
        """Designated main variant for a language family, e.g. "zh" -> zh-CN."""
        family = [loc for loc in self._locales.values() if loc.language == language.lower()]
        if not family:
            return None
        for loc in sorted(family, key=lambda l: l.priority):
            if loc.is_main_variant:
                return loc
        return min(family, key=lambda l: l.priority)

    # Fallbacks

    def configured_fallback(self, code: str) -> Optional[str]:
        """Fallback declared for a code: the locale's own, else the regional map."""
        locale = self._locales.get(code)
        if locale is not None:
            return locale.fallback
        return self._regional_fallbacks.get(code)

    def fallback_chain(self, code: str) -> List[str]:
        """Ordered codes to try for `code`, always ending at the default."""
        chain: List[str] = []
        current: Optional[str] = code
        while current is not None:
            if current in chain:
                raise ConfigurationError(f"Fallback cycle detected: {' -> '.join(chain + [current])}")
            chain.append(current)
            if current == self._default_code:
                break
            nxt = self.configured_fallback(current)
            if nxt is None and current in self._locales:
                nxt = self._default_code
            current = nxt
        if chain[-1] != self._default_code:
            chain.append(self._default_code)
        return chain

    def resolve_fallback(self, code: str) -> Tuple[LocaleCode, bool]:
        """
        First supported locale on the fallback chain of an unsupported code.

        Returns:
            (locale, configured) where `configured` is False when nothing but
            the global default was left to use.
        """
        for candidate in self.fallback_chain(code)[1:]:
            if candidate == self._default_code:
                break
            if candidate in self._locales:
                return self._locales[candidate], True
        configured = self.configured_fallback(code) == self._default_code
        return self.default, configured

    # Client language negotiation

    def deprecated_target(self, code: str) -> Optional[LocaleCode]:
        target = self._deprecated.get(code)
        return self._locales.get(target) if target else None

    def deprecated_codes(self) -> Dict[str, str]:
        return dict(self._deprecated)

    def match_client_pattern(self, tag: str) -> Optional[LocaleCode]:
        """Supported regional variant whose pattern list contains `tag`."""
        lowered = tag.lower()
        for code, patterns in self._client_patterns.items():
            if lowered in patterns and code in self._locales:
                return self._locales[code]
        return None

    # Listings

    def priority_order(self) -> List[LocaleCode]:
        return sorted(self._locales.values(), key=lambda l: (l.priority, l.code))

    def hreflang_map(self) -> Dict[str, str]:
        """html lang attribute -> canonical code, for alternate-link generation."""
        return {(loc.html_lang or loc.code): loc.code for loc in self.priority_order()}
