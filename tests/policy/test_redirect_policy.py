"""Tests for the redirect policy evaluator."""
import pytest

from locale_engine.config import ProtectedRoute, ProtectionSettings
from locale_engine.locales.models import DetectionResult, DetectionSource
from locale_engine.locales.paths import parse_prefix
from locale_engine.locales.validation import validate_locale_code
from locale_engine.policy.evaluator import RedirectPolicyEvaluator
from locale_engine.policy.models import Action, RedirectReason, RedirectStatus


@pytest.fixture
def evaluator(registry):
    protection = ProtectionSettings(
        protected_routes=[
            ProtectedRoute(prefix="/admin", required=["admin"]),
            ProtectedRoute(prefix="/account", required=["user"], also_granted_by=["admin"]),
        ]
    )
    return RedirectPolicyEvaluator(registry, protection)


def evaluate(evaluator, path, detection=None):
    prefix = parse_prefix(path, evaluator.registry)
    validation = None
    if prefix.kind not in ("none", "canonical"):
        validation = validate_locale_code(prefix.token, evaluator.registry)
    return evaluator.evaluate(path, prefix, validation, detection)


def detected(registry, code, source=DetectionSource.CLIENT):
    return DetectionResult(locale=registry.get(code), source=source, confidence=0.7)


def test_canonical_prefix_passes(evaluator):
    result = evaluate(evaluator, "/ja/news")
    assert result.action == Action.PASS
    assert result.locale == "ja"
    assert result.redirect is None


def test_alias_is_corrected_permanently(evaluator):
    result = evaluate(evaluator, "/zh-cn/markets")
    assert result.action == Action.CORRECT
    assert result.redirect.to_path == "/zh-CN/markets"
    assert result.redirect.status == RedirectStatus.PERMANENT
    assert result.redirect.reason == RedirectReason.NON_CANONICAL


def test_deprecated_code_redirects_to_replacement(evaluator):
    result = evaluate(evaluator, "/zh/news")
    assert result.action == Action.REDIRECT
    assert result.redirect.to_path == "/zh-CN/news"
    assert result.redirect.status == 301
    assert result.redirect.reason == RedirectReason.DEPRECATED_LOCALE


def test_invalid_code_with_regional_fallback(evaluator, registry):
    result = evaluate(evaluator, "/zh-SG/x", detection=detected(registry, "ja"))
    assert result.action == Action.REDIRECT
    assert result.redirect.to_path == "/zh-CN/x"
    assert result.redirect.reason == RedirectReason.FALLBACK
    assert result.redirect.detection_source == "fallback"


def test_invalid_code_without_fallback_uses_detection(evaluator, registry):
    result = evaluate(evaluator, "/xx/trading/BTC", detection=detected(registry, "ko"))
    assert result.redirect.to_path == "/ko/trading/BTC"
    assert result.redirect.status == 301
    assert result.redirect.reason == RedirectReason.INVALID_LOCALE
    assert result.redirect.detection_source == "client-negotiated"


def test_missing_prefix_redirects_with_see_other(evaluator, registry):
    result = evaluate(evaluator, "/user/dashboard", detection=detected(registry, "zh-TC"))
    assert result.action == Action.REDIRECT
    assert result.redirect.to_path == "/zh-TC/user/dashboard"
    assert result.redirect.status == RedirectStatus.SEE_OTHER
    assert result.redirect.reason == RedirectReason.NO_LOCALE


def test_missing_prefix_without_detection_uses_default(evaluator):
    result = evaluate(evaluator, "/")
    assert result.redirect.to_path == "/en"
    assert result.redirect.detection_source == "default"


def test_needs_detection(evaluator):
    registry = evaluator.registry
    assert evaluator.needs_detection(parse_prefix("/x", registry), None)
    assert not evaluator.needs_detection(parse_prefix("/ja/x", registry), None)

    sg = parse_prefix("/zh-SG/x", registry)
    assert not evaluator.needs_detection(sg, validate_locale_code("zh-SG", registry))
    xx = parse_prefix("/xx/x", registry)
    assert evaluator.needs_detection(xx, validate_locale_code("xx", registry))


def test_protected_route_is_blocked_without_permission(evaluator):
    result = evaluator.check_protection("/admin/panel", {"user"})
    assert result.action == Action.BLOCK
    assert result.required_permissions == ("admin",)
    assert result.error["type"] == "protected_route_access"
    assert result.metadata == {"protected_prefix": "/admin"}


@pytest.mark.parametrize("path", ["/ja/admin/panel", "/xx/admin/panel", "/admin"])
def test_protection_ignores_locale_prefix(evaluator, path):
    assert evaluator.check_protection(path, set()).action == Action.BLOCK


def test_permission_grants_access(evaluator):
    assert evaluator.check_protection("/admin/panel", {"admin"}) is None
    assert evaluator.check_protection("/account/settings", {"admin"}) is None
    assert evaluator.check_protection("/administrator", set()) is None


def test_public_routes(evaluator):
    assert evaluator.is_public("/")
    assert evaluator.is_public("/ja")
    assert evaluator.is_public("/ja/help/faq")
    assert not evaluator.is_public("/user/dashboard")


def test_disabled_protection(registry):
    evaluator = RedirectPolicyEvaluator(registry, ProtectionSettings(enabled=False))
    assert evaluator.check_protection("/admin", set()) is None
