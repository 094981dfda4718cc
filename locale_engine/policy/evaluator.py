"""Redirect policy: PASS / REDIRECT / BLOCK / CORRECT for an incoming path."""
from typing import Collection, Optional, TYPE_CHECKING

from locale_engine.locales.models import DetectionResult, PrefixMatch, ValidationOutcome
from locale_engine.locales.paths import join_locale, parse_prefix
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.policy.models import (
    Action,
    RedirectDecision,
    RedirectReason,
    RedirectStatus,
    StageResult,
)
from locale_engine.utils.errors import ProtectedRouteDeniedError

if TYPE_CHECKING:
    from locale_engine.config import ProtectionSettings

STAGE = "redirect_policy"


class RedirectPolicyEvaluator:
    """
    Decides the action for a path from its locale prefix.

    Invalid prefixes redirect permanently since the URL itself is wrong;
    missing prefixes redirect with 303 since the target depends on
    negotiation and can differ per visitor.
    """

    def __init__(self, registry: LocaleRegistry, protection: Optional["ProtectionSettings"] = None):
        self.registry = registry
        self.protection = protection

    def base_path(self, path: str) -> str:
        """Path with any locale-looking first segment removed."""
        return parse_prefix(path, self.registry).remainder

    def is_public(self, path: str) -> bool:
        if self.protection is None:
            return False
        base = self.base_path(path)
        for route in self.protection.public_routes:
            if route == "/":
                if base == "/":
                    return True
            elif base == route or base.startswith(route.rstrip("/") + "/"):
                return True
        return False

    def check_protection(self, path: str, permissions: Collection[str]) -> Optional[StageResult]:
        """BLOCK result when a protected route is denied, else None."""
        if self.protection is None or not self.protection.enabled or self.is_public(path):
            return None

        base = self.base_path(path)
        for route in self.protection.protected_routes:
            if route.matches(base) and not route.grants(permissions):
                error = ProtectedRouteDeniedError(
                    f"Access to {route.prefix} requires {', '.join(route.required)}",
                    {"path": path, "required_permissions": list(route.required)},
                )
                return StageResult(
                    stage="protection",
                    action=Action.BLOCK,
                    required_permissions=tuple(route.required),
                    error=error.to_dict(),
                    metadata={"protected_prefix": route.prefix},
                )
        return None

    def needs_detection(self, prefix: PrefixMatch, validation: Optional[ValidationOutcome]) -> bool:
        if prefix.kind == "none":
            return True
        if prefix.kind == "invalid":
            return not (validation is not None and validation.fallback_used and validation.configured_fallback)
        return False

    def evaluate(
        self,
        path: str,
        prefix: PrefixMatch,
        validation: Optional[ValidationOutcome] = None,
        detection: Optional[DetectionResult] = None,
    ) -> StageResult:
        if prefix.kind == "canonical":
            return StageResult(stage=STAGE, action=Action.PASS, locale=prefix.locale.code)

        if prefix.kind == "alias":
            return self._redirect(
                path, prefix, prefix.locale.code, RedirectReason.NON_CANONICAL,
                RedirectStatus.PERMANENT, Action.CORRECT, "path",
            )

        if prefix.kind == "deprecated":
            return self._redirect(
                path, prefix, prefix.locale.code, RedirectReason.DEPRECATED_LOCALE,
                RedirectStatus.PERMANENT, Action.REDIRECT, "path",
            )

        if prefix.kind == "invalid":
            if validation is not None and validation.fallback_used and validation.configured_fallback:
                return self._redirect(
                    path, prefix, validation.fallback_used.code, RedirectReason.FALLBACK,
                    RedirectStatus.PERMANENT, Action.REDIRECT, "fallback",
                )
            target = detection.locale if detection is not None else self.registry.default
            return self._redirect(
                path, prefix, target.code, RedirectReason.INVALID_LOCALE,
                RedirectStatus.PERMANENT, Action.REDIRECT,
                detection.source.value if detection is not None else "default",
            )

        target = detection.locale if detection is not None else self.registry.default
        return self._redirect(
            path, prefix, target.code, RedirectReason.NO_LOCALE,
            RedirectStatus.SEE_OTHER, Action.REDIRECT,
            detection.source.value if detection is not None else "default",
        )

    def _redirect(
        self,
        path: str,
        prefix: PrefixMatch,
        locale: str,
        reason: RedirectReason,
        status: RedirectStatus,
        action: Action,
        source: str,
    ) -> StageResult:
        to_path = join_locale(locale, prefix.remainder)
        decision = RedirectDecision(
            needed=True,
            reason=reason,
            from_path=path,
            to_path=to_path,
            status=status,
            detection_source=source,
        )
        return StageResult(stage=STAGE, action=action, locale=locale, redirect=decision)
