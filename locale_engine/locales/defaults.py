"""Built-in locale table used when config.yaml does not define `locales`."""

DEFAULT_LOCALE = "en"

DEFAULT_LOCALES = [
    {
        "code": "en",
        "name": "English",
        "native_name": "English",
        "fallback": None,
        "priority": 1,
        "is_main_variant": True,
        "seo_code": "en",
        "html_lang": "en",
        "regions": ["US", "GB", "AU", "CA"],
    },
    {
        "code": "zh-CN",
        "name": "Chinese (Simplified)",
        "native_name": "简体中文",
        "fallback": None,
        "priority": 2,
        "is_main_variant": True,
        "seo_code": "zh-cn",
        "html_lang": "zh-CN",
        "regions": ["CN", "SG"],
    },
    {
        "code": "ja",
        "name": "Japanese",
        "native_name": "日本語",
        "fallback": "en",
        "priority": 3,
        "is_main_variant": True,
        "seo_code": "ja",
        "html_lang": "ja",
        "regions": ["JP"],
    },
    {
        "code": "en-IN",
        "name": "English (India)",
        "native_name": "English (India)",
        "fallback": "en",
        "priority": 4,
        "is_main_variant": False,
        "seo_code": "en-in",
        "html_lang": "en-IN",
        "regions": ["IN"],
    },
    {
        "code": "zh-TC",
        "name": "Chinese (Traditional)",
        "native_name": "繁體中文",
        "fallback": "zh-CN",
        "priority": 5,
        "is_main_variant": False,
        "seo_code": "zh-tc",
        "html_lang": "zh-TW",
        "regions": ["TW", "HK", "MO"],
    },
    {
        "code": "ko",
        "name": "Korean",
        "native_name": "한국어",
        "fallback": "en",
        "priority": 6,
        "is_main_variant": True,
        "seo_code": "ko",
        "html_lang": "ko",
        "regions": ["KR"],
    },
    {
        "code": "ru",
        "name": "Russian",
        "native_name": "Русский",
        "fallback": "en",
        "priority": 7,
        "is_main_variant": True,
        "seo_code": "ru",
        "html_lang": "ru",
        "regions": ["RU"],
    },
]

# Client language tags mapped onto one supported regional variant
CLIENT_LANGUAGE_PATTERNS = {
    "en": ["en", "en-US", "en-GB", "en-AU", "en-CA"],
    "en-IN": ["en-IN"],
    "zh-CN": ["zh", "zh-CN", "zh-Hans", "zh-Hans-CN"],
    "zh-TC": ["zh-TW", "zh-HK", "zh-MO", "zh-Hant", "zh-Hant-TW", "zh-Hant-HK"],
    "ja": ["ja", "ja-JP"],
    "ko": ["ko", "ko-KR"],
    "ru": ["ru", "ru-RU"],
}

# Codes that used to be served and now redirect permanently
DEPRECATED_CODES = {
    "zh": "zh-CN",
    "zh-TW": "zh-TC",
    "zh-HK": "zh-TC",
}

# Fallbacks for unsupported regional variants
REGIONAL_FALLBACKS = {
    "en-US": "en",
    "en-GB": "en",
    "en-AU": "en",
    "en-CA": "en",
    "zh-SG": "zh-CN",
    "zh-MO": "zh-TC",
    "ja-JP": "ja",
    "ko-KR": "ko",
    "ru-RU": "ru",
    "ru-UA": "ru",
}
