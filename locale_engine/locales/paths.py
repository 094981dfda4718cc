"""Canonical localized path generation and prefix parsing."""
import re
from typing import TYPE_CHECKING, List, Optional

from locale_engine.locales.models import PrefixMatch

if TYPE_CHECKING:
    from locale_engine.locales.registry import LocaleRegistry

# Anything shaped like a language tag: "xx", "xx-YY", "xx_yy", "zh-Hant"
LOCALE_LIKE = re.compile(r"^[A-Za-z]{2}([-_][A-Za-z0-9]{2,4})?$")
REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Absolute form of `path` with runs of slashes collapsed; the query is untouched."""
    cut = min((i for i in (path.find("?"), path.find("#")) if i >= 0), default=len(path))
    return REPEATED_SLASHES.sub("/", "/" + path[:cut]) + path[cut:]


def _split(path: str):
    """Return (first_segment, remainder) of a path, ignoring empty segments."""
    body = normalize_path(path)[1:]
    if not body:
        return "", "/"
    head, sep, tail = body.partition("/")
    return head, "/" + tail if sep else "/"


def extract_locale(path: str, registry: "LocaleRegistry") -> Optional[str]:
    """Canonical supported locale in the first path segment, if any."""
    head, _ = _split(path)
    return head if registry.is_supported(head) else None


def strip_locale(path: str, registry: "LocaleRegistry") -> str:
    """Path with a leading supported locale segment removed."""
    head, rest = _split(path)
    if registry.is_supported(head):
        return rest
    return normalize_path(path)


def join_locale(locale: str, base: str) -> str:
    """Prefix an unlocalized absolute path with `locale`."""
    if base == "/":
        return f"/{locale}"
    return f"/{locale}{base}"


def to_localized_path(path: str, locale: str, registry: "LocaleRegistry") -> str:
    """
    Prefix `path` with `locale`, replacing an existing supported prefix.

    "/" maps to "/<locale>" so that strip_locale gives "/" back.
    """
    return join_locale(locale, strip_locale(path, registry))


def has_valid_locale_prefix(path: str, registry: "LocaleRegistry") -> bool:
    return extract_locale(path, registry) is not None


def localized_paths(path: str, registry: "LocaleRegistry") -> List[str]:
    """Every supported localization of `path`, in priority order."""
    return [to_localized_path(path, loc.code, registry) for loc in registry.priority_order()]


def parse_prefix(path: str, registry: "LocaleRegistry") -> PrefixMatch:
    """Classify the first path segment against the supported locales."""
    # Imported here to keep validation -> paths free of cycles
    from locale_engine.locales.validation import normalize_locale_code

    head, rest = _split(path)
    if not head:
        return PrefixMatch(kind="none", remainder=rest)

    if registry.is_supported(head):
        return PrefixMatch(kind="canonical", token=head, locale=registry.get(head), remainder=rest)

    alias = registry.by_alias(head)
    if alias is None and LOCALE_LIKE.match(head):
        alias = registry.get(normalize_locale_code(head))
    if alias is not None:
        return PrefixMatch(kind="alias", token=head, locale=alias, remainder=rest)

    if LOCALE_LIKE.match(head):
        normalized = normalize_locale_code(head)
        target = registry.deprecated_target(normalized)
        if target is not None:
            return PrefixMatch(
                kind="deprecated",
                token=head,
                locale=target,
                remainder=rest,
                details={"normalized": normalized},
            )
        return PrefixMatch(kind="invalid", token=head, remainder=rest, details={"normalized": normalized})

    return PrefixMatch(kind="none", remainder=normalize_path(path))
