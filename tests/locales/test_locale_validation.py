"""Tests for locale code normalization and validation."""
from locale_engine.locales.validation import normalize_locale_code, validate_locale_code


def test_normalize():
    assert normalize_locale_code("zh_cn") == "zh-CN"
    assert normalize_locale_code("EN") == "en"
    assert normalize_locale_code(" ja-jp ") == "ja-JP"
    assert normalize_locale_code("zh-hant") == "zh-Hant"


def test_normalize_is_idempotent():
    for token in ("zh_tw", "EN-in", "ru", "zh-Hant"):
        once = normalize_locale_code(token)
        assert normalize_locale_code(once) == once


def test_supported_code_is_valid(registry):
    outcome = validate_locale_code("zh_CN", registry)
    assert outcome.is_valid
    assert outcome.normalized == "zh-CN"
    assert outcome.fallback_used is None
    assert outcome.issues == ()


def test_regional_variant_uses_its_configured_fallback(registry):
    outcome = validate_locale_code("zh-SG", registry)
    assert not outcome.is_valid
    assert outcome.fallback_used.code == "zh-CN"
    assert outcome.configured_fallback
    assert outcome.effective_code() == "zh-CN"


def test_unknown_code_falls_back_to_default(registry):
    outcome = validate_locale_code("xx", registry)
    assert not outcome.is_valid
    assert outcome.fallback_used.code == "en"
    assert not outcome.configured_fallback
    assert outcome.format_valid
    assert not outcome.rejected


def test_malformed_code_records_format_issue(registry):
    outcome = validate_locale_code("english", registry)
    assert not outcome.format_valid
    assert any("invalid format" in issue for issue in outcome.issues)
    assert outcome.fallback_used.code == "en"


def test_no_fallback_rejects(registry):
    outcome = validate_locale_code("xx", registry, allow_fallback=False)
    assert outcome.rejected
    assert outcome.effective_code() is None
    assert any("unsupported" in issue for issue in outcome.issues)


def test_strict_refuses_fallback_for_malformed_code(registry):
    assert validate_locale_code("zh-Hant", registry, strict=True).rejected
    # Well-formed codes still fall back in strict mode
    assert not validate_locale_code("xx", registry, strict=True).rejected
