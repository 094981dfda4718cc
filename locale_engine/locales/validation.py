"""Locale code normalization and validation."""
import re
from typing import List, TYPE_CHECKING

from locale_engine.locales.models import ValidationOutcome

if TYPE_CHECKING:
    from locale_engine.locales.registry import LocaleRegistry

LOCALE_FORMAT = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")


def normalize_locale_code(token: str) -> str:
    """
    Canonical casing and separators for a raw locale token.

    "zh_cn" -> "zh-CN", "EN" -> "en". Script-like subtags longer than two
    characters are title-cased ("zh-hant" -> "zh-Hant").
    """
    token = token.strip().replace("_", "-")
    if not token:
        return token
    language, sep, region = token.partition("-")
    language = language.lower()
    if not sep:
        return language
    if len(region) == 2:
        region = region.upper()
    elif region.isalpha():
        region = region.title()
    return f"{language}-{region}"


def validate_locale_code(
    token: str,
    registry: "LocaleRegistry",
    allow_fallback: bool = True,
    strict: bool = False,
) -> ValidationOutcome:
    """
    Validate a raw locale token against the supported set.

    Args:
        token: Raw token, e.g. a path segment
        registry: Supported locales
        allow_fallback: Resolve an unsupported code through its fallback chain
        strict: Refuse the fallback when the token breaks the locale grammar

    Returns:
        ValidationOutcome; `rejected` is true when the caller must block
    """
    normalized = normalize_locale_code(token or "")
    if registry.is_supported(normalized):
        return ValidationOutcome(is_valid=True, normalized=normalized)

    issues: List[str] = []
    format_valid = bool(LOCALE_FORMAT.match(normalized))
    if not format_valid:
        issues.append(f"invalid format: {token!r}")

    if not allow_fallback:
        issues.append(f"unsupported locale: {normalized}")
        return ValidationOutcome(
            is_valid=False, normalized=normalized, format_valid=format_valid, issues=tuple(issues)
        )

    if strict and not format_valid:
        issues.append("strict mode: fallback refused for malformed code")
        return ValidationOutcome(
            is_valid=False, normalized=normalized, format_valid=False, issues=tuple(issues)
        )

    fallback, configured = registry.resolve_fallback(normalized)
    issues.append(f"unsupported locale: {normalized}, using fallback {fallback.code}")
    return ValidationOutcome(
        is_valid=False,
        normalized=normalized,
        fallback_used=fallback,
        configured_fallback=configured,
        format_valid=format_valid,
        issues=tuple(issues),
    )
