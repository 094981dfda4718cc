"""Supported locales, path codec and validation."""
from locale_engine.locales.models import (
    DetectionResult,
    DetectionSource,
    Direction,
    LocaleCode,
    PrefixMatch,
    ValidationOutcome,
)
from locale_engine.locales.paths import (
    extract_locale,
    has_valid_locale_prefix,
    localized_paths,
    parse_prefix,
    strip_locale,
    to_localized_path,
)
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.locales.validation import normalize_locale_code, validate_locale_code

__all__ = [
    "DetectionResult",
    "DetectionSource",
    "Direction",
    "LocaleCode",
    "LocaleRegistry",
    "PrefixMatch",
    "ValidationOutcome",
    "extract_locale",
    "has_valid_locale_prefix",
    "localized_paths",
    "normalize_locale_code",
    "parse_prefix",
    "strip_locale",
    "to_localized_path",
    "validate_locale_code",
]
