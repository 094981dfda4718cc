"""Configuration management for the locale engine."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from locale_engine.locales.defaults import (
    CLIENT_LANGUAGE_PATTERNS,
    DEFAULT_LOCALE,
    DEFAULT_LOCALES,
    DEPRECATED_CODES,
    REGIONAL_FALLBACKS,
)
from locale_engine.utils.errors import ConfigurationError
from locale_engine.utils.logging import setup_logging
from locale_engine.utils.paths import resolve_config_path

logger = logging.getLogger(__name__)


@dataclass
class LocalesSettings:
    default: str = DEFAULT_LOCALE
    definitions: List[Dict[str, Any]] = field(default_factory=lambda: [dict(d) for d in DEFAULT_LOCALES])
    client_patterns: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in CLIENT_LANGUAGE_PATTERNS.items()}
    )
    deprecated: Dict[str, str] = field(default_factory=lambda: dict(DEPRECATED_CODES))
    regional_fallbacks: Dict[str, str] = field(default_factory=lambda: dict(REGIONAL_FALLBACKS))


@dataclass
class DetectionSettings:
    persisted_max_age_hours: float = 24.0
    analytics_enabled: bool = True


@dataclass
class ValidationSettings:
    allow_fallback: bool = True
    strict: bool = False


@dataclass
class ProtectedRoute:
    prefix: str
    required: List[str]
    # Permissions that also grant access without being reported as required
    also_granted_by: List[str] = field(default_factory=list)

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix.rstrip("/") + "/")

    def grants(self, permissions) -> bool:
        allowed = set(self.required) | set(self.also_granted_by)
        return bool(allowed & set(permissions))


@dataclass
class ProtectionSettings:
    enabled: bool = True
    protected_routes: List[ProtectedRoute] = field(
        default_factory=lambda: [ProtectedRoute(prefix="/admin", required=["admin"])]
    )
    public_routes: List[str] = field(default_factory=lambda: ["/", "/register", "/login", "/help"])


@dataclass
class LoopGuardSettings:
    window_seconds: float = 60.0
    sub_window_seconds: float = 10.0
    threshold: int = 3


@dataclass
class PersistenceSettings:
    memory_ttl_seconds: float = 300.0
    migration_timeout_seconds: float = 1.0
    preference_key: str = "locale_preference_v3"
    override_key: str = "locale_override_v3"
    legacy_keys: List[str] = field(default_factory=lambda: ["locale", "locale_v2", "i18nextLng"])
    durable_enabled: bool = True
    durable_url: str = "sqlite:///data/locale_engine.db"
    session_enabled: bool = True
    cookie_enabled: bool = True
    cookie_max_age_seconds: int = 365 * 24 * 60 * 60
    cookie_path: str = "/"


@dataclass
class PipelineSettings:
    cache_ttl_seconds: float = 60.0
    cache_max_size: int = 1000
    error_mode: str = "graceful"  # graceful | strict
    slow_threshold_ms: float = 50.0
    sweep_interval_seconds: float = 30.0


@dataclass
class AnalyticsSettings:
    enabled: bool = True
    batch_size: int = 10
    flush_interval_seconds: float = 30.0
    flush_timeout_seconds: float = 5.0
    max_events: int = 200
    endpoint_url: Optional[str] = None
    endpoint_headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class EngineConfig:
    locales: LocalesSettings = field(default_factory=LocalesSettings)
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    protection: ProtectionSettings = field(default_factory=ProtectionSettings)
    loop_guard: LoopGuardSettings = field(default_factory=LoopGuardSettings)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)

    @classmethod
    def from_yaml(cls, config_path: str = "config.yaml") -> "EngineConfig":
        cfg_path = resolve_config_path(config_path)
        if not cfg_path.exists():
            logger.warning(f"Engine config not found at {cfg_path}; using defaults")
            return cls()
        with open(cfg_path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        defaults = cls()

        l_src = data.get("locales") or {}
        loc_def = defaults.locales
        locales = LocalesSettings(
            default=str(l_src.get("default", loc_def.default)),
            definitions=list(l_src.get("definitions") or loc_def.definitions),
            client_patterns={
                str(k): [str(t) for t in v]
                for k, v in (l_src.get("client_patterns") or loc_def.client_patterns).items()
            },
            deprecated={str(k): str(v) for k, v in (l_src.get("deprecated") or loc_def.deprecated).items()},
            regional_fallbacks={
                str(k): str(v)
                for k, v in (l_src.get("regional_fallbacks") or loc_def.regional_fallbacks).items()
            },
        )

        d_src = data.get("detection") or {}
        detection = DetectionSettings(
            persisted_max_age_hours=float(
                d_src.get("persisted_max_age_hours", defaults.detection.persisted_max_age_hours)
            ),
            analytics_enabled=bool(d_src.get("analytics_enabled", defaults.detection.analytics_enabled)),
        )

        v_src = data.get("validation") or {}
        validation = ValidationSettings(
            allow_fallback=bool(v_src.get("allow_fallback", defaults.validation.allow_fallback)),
            strict=bool(v_src.get("strict", defaults.validation.strict)),
        )

        p_src = data.get("protection") or {}
        routes_src = p_src.get("protected_routes")
        if routes_src is None:
            routes = defaults.protection.protected_routes
        else:
            routes = [
                ProtectedRoute(
                    prefix=str(r["prefix"]),
                    required=[str(p) for p in r.get("required", [])],
                    also_granted_by=[str(p) for p in r.get("also_granted_by", [])],
                )
                for r in routes_src
            ]
        protection = ProtectionSettings(
            enabled=bool(p_src.get("enabled", defaults.protection.enabled)),
            protected_routes=routes,
            public_routes=[str(r) for r in p_src.get("public_routes", defaults.protection.public_routes)],
        )

        g_src = data.get("loop_guard") or {}
        loop_guard = LoopGuardSettings(
            window_seconds=float(g_src.get("window_seconds", defaults.loop_guard.window_seconds)),
            sub_window_seconds=float(g_src.get("sub_window_seconds", defaults.loop_guard.sub_window_seconds)),
            threshold=int(g_src.get("threshold", defaults.loop_guard.threshold)),
        )

        s_src = data.get("persistence") or {}
        s_def = defaults.persistence
        durable = s_src.get("durable") or {}
        session = s_src.get("session") or {}
        cookie = s_src.get("cookie") or {}
        persistence = PersistenceSettings(
            memory_ttl_seconds=float(s_src.get("memory_ttl_seconds", s_def.memory_ttl_seconds)),
            migration_timeout_seconds=float(
                s_src.get("migration_timeout_seconds", s_def.migration_timeout_seconds)
            ),
            preference_key=str(s_src.get("preference_key", s_def.preference_key)),
            override_key=str(s_src.get("override_key", s_def.override_key)),
            legacy_keys=[str(k) for k in s_src.get("legacy_keys", s_def.legacy_keys)],
            durable_enabled=bool(durable.get("enabled", s_def.durable_enabled)),
            durable_url=str(durable.get("url", s_def.durable_url)),
            session_enabled=bool(session.get("enabled", s_def.session_enabled)),
            cookie_enabled=bool(cookie.get("enabled", s_def.cookie_enabled)),
            cookie_max_age_seconds=int(cookie.get("max_age_seconds", s_def.cookie_max_age_seconds)),
            cookie_path=str(cookie.get("path", s_def.cookie_path)),
        )

        pl_src = data.get("pipeline") or {}
        pl_def = defaults.pipeline
        error_mode = str(pl_src.get("error_mode", pl_def.error_mode))
        if error_mode not in ("graceful", "strict"):
            raise ConfigurationError(f"Unknown pipeline.error_mode: {error_mode}")
        pipeline = PipelineSettings(
            cache_ttl_seconds=float(pl_src.get("cache_ttl_seconds", pl_def.cache_ttl_seconds)),
            cache_max_size=int(pl_src.get("cache_max_size", pl_def.cache_max_size)),
            error_mode=error_mode,
            slow_threshold_ms=float(pl_src.get("slow_threshold_ms", pl_def.slow_threshold_ms)),
            sweep_interval_seconds=float(pl_src.get("sweep_interval_seconds", pl_def.sweep_interval_seconds)),
        )

        a_src = data.get("analytics") or {}
        a_def = defaults.analytics
        endpoint = a_src.get("endpoint") or {}
        analytics = AnalyticsSettings(
            enabled=bool(a_src.get("enabled", a_def.enabled)),
            batch_size=int(a_src.get("batch_size", a_def.batch_size)),
            flush_interval_seconds=float(a_src.get("flush_interval_seconds", a_def.flush_interval_seconds)),
            flush_timeout_seconds=float(a_src.get("flush_timeout_seconds", a_def.flush_timeout_seconds)),
            max_events=int(a_src.get("max_events", a_def.max_events)),
            endpoint_url=endpoint.get("url") or os.getenv("LOCALE_ENGINE_ANALYTICS_URL"),
            endpoint_headers={str(k): str(v) for k, v in (endpoint.get("headers") or {}).items()},
        )

        return cls(
            locales=locales,
            detection=detection,
            validation=validation,
            protection=protection,
            loop_guard=loop_guard,
            persistence=persistence,
            pipeline=pipeline,
            analytics=analytics,
        )


class Config:
    """Application configuration: the YAML document plus `.env`."""

    def __init__(self, config_path: str = "config.yaml", log_level: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file
            log_level: Wins over LOG_LEVEL and logging.level when given
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load(log_level)

    def _load(self, log_level: Optional[str]) -> None:
        """Load configuration from YAML and environment."""
        load_dotenv(find_dotenv(usecwd=True))

        if not self.config_path.exists():
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r') as f:
            self._config = yaml.safe_load(f)

        if not self._config:
            raise ConfigurationError(f"Empty configuration file: {self.config_path}")

        self._validate()

        log_config = self._config.get('logging', {})
        setup_logging(
            level=log_level or os.getenv('LOG_LEVEL', log_config.get('level', 'INFO')),
            log_file=log_config.get('file'),
            format_type=log_config.get('format', 'json'),
            enabled=log_config.get('enabled', True)
        )

        logger.info("Configuration loaded successfully")

    def _validate(self) -> None:
        """Validate required configuration sections."""
        for section in ('app', 'locales'):
            if section not in self._config:
                raise ConfigurationError(f"Missing required config section: {section}")

        if 'default' not in (self._config['locales'] or {}):
            raise ConfigurationError("Missing locales.default in config")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., "pipeline.cache_ttl_seconds")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def engine_config(self) -> EngineConfig:
        """Typed engine settings built from the same document."""
        return EngineConfig.from_dict(self._config)

    @property
    def app_name(self) -> str:
        return self.get('app.name', 'Locale Engine')

    @property
    def app_version(self) -> str:
        return self.get('app.version', '0.1.0')


_config: Optional[Config] = None


def load_config(
    config_path: str = "config.yaml", log_level: Optional[str] = None, reload: bool = False
) -> Config:
    """Load and return the global configuration instance."""
    global _config
    if _config is None or reload:
        _config = Config(str(resolve_config_path(config_path)), log_level=log_level)
    return _config


def get_config() -> Config:
    """Get global configuration instance."""
    if _config is None:
        raise ConfigurationError("Configuration not loaded. Call load_config() first.")
    return _config
