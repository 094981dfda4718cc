from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Direction(str, Enum):
    LTR = "ltr"
    RTL = "rtl"


class DetectionSource(str, Enum):
    PATH = "path"
    PERSISTED = "persisted"
    CLIENT = "client-negotiated"
    DEFAULT = "default"


@dataclass(frozen=True)
class LocaleCode:
    """One supported locale and its routing metadata."""

    code: str  # canonical form, e.g. "zh-CN"
    name: str
    native_name: str = ""
    direction: Direction = Direction.LTR
    fallback: Optional[str] = None
    priority: int = 100
    is_main_variant: bool = True
    seo_code: Optional[str] = None  # URL alias, lower-case
    html_lang: Optional[str] = None
    regions: Tuple[str, ...] = ()

    @property
    def language(self) -> str:
        return self.code.split("-")[0]

    @property
    def region(self) -> Optional[str]:
        parts = self.code.split("-", 1)
        return parts[1] if len(parts) > 1 else None

    @property
    def url_alias(self) -> str:
        return self.seo_code or self.code.lower()


@dataclass(frozen=True)
class DetectionResult:
    locale: LocaleCode
    source: DetectionSource
    confidence: float  # 0.0-1.0
    original_signal: Optional[str] = None
    match_type: Optional[str] = None  # exact | alias | pattern | family

    @property
    def code(self) -> str:
        return self.locale.code


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating a raw locale token.

    `is_valid` is true only when the normalized token is itself supported.
    `fallback_used` names the locale to use instead when it is not; a missing
    fallback on an invalid token means the token must be rejected.
    """

    is_valid: bool
    normalized: str
    fallback_used: Optional[LocaleCode] = None
    configured_fallback: bool = False  # fallback came from configuration, not the global default
    format_valid: bool = True
    issues: Tuple[str, ...] = ()

    @property
    def rejected(self) -> bool:
        return not self.is_valid and self.fallback_used is None

    def effective_code(self) -> Optional[str]:
        if self.is_valid:
            return self.normalized
        return self.fallback_used.code if self.fallback_used else None


@dataclass
class PrefixMatch:
    """How the first path segment relates to the supported locales."""

    kind: str  # canonical | alias | deprecated | invalid | none
    token: Optional[str] = None
    locale: Optional[LocaleCode] = None
    remainder: str = "/"
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_prefix(self) -> bool:
        return self.kind != "none"

