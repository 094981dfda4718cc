"""Pytest configuration and fixtures."""
import pytest
from pathlib import Path
import tempfile
import yaml

from locale_engine.analytics.sinks import CollectingSink
from locale_engine.config import EngineConfig
from locale_engine.engine import LocaleEngine
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.persistence.tiers import InMemoryStorageTier, StorageTier


class ManualClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenTier(StorageTier):
    """Tier whose every operation fails."""

    def __init__(self, name: str = "broken"):
        self.name = name
        self.calls = 0

    async def get(self, key):
        self.calls += 1
        raise OSError("storage offline")

    async def set(self, key, value):
        self.calls += 1
        raise OSError("storage offline")

    async def remove(self, key):
        self.calls += 1
        raise OSError("storage offline")


@pytest.fixture
def temp_config_file():
    """Create a temporary config file for testing."""
    config_data = {
        'app': {
            'name': 'Test Engine',
            'version': '0.1.0',
            'debug': True
        },
        'logging': {
            'level': 'DEBUG',
            'format': 'text'
        },
        'locales': {
            'default': 'en',
            'definitions': [
                {'code': 'en', 'name': 'English', 'priority': 1},
                {'code': 'ja', 'name': 'Japanese', 'fallback': 'en', 'priority': 2},
                {'code': 'zh-CN', 'name': 'Chinese', 'priority': 3, 'seo_code': 'zh-cn'},
            ],
            'deprecated': {'zh': 'zh-CN'},
            'regional_fallbacks': {'ja-JP': 'ja'},
        },
        'protection': {
            'protected_routes': [
                {'prefix': '/admin', 'required': ['admin']},
                {'prefix': '/account', 'required': ['user'], 'also_granted_by': ['admin']},
            ]
        },
        'loop_guard': {'threshold': 5},
        'persistence': {
            'durable': {'enabled': False},
            'cookie': {'enabled': False},
        },
        'pipeline': {
            'cache_ttl_seconds': 30,
            'error_mode': 'graceful'
        },
        'analytics': {
            'batch_size': 5
        }
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)
        config_path = f.name

    yield config_path

    # Cleanup
    Path(config_path).unlink()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def registry():
    return LocaleRegistry.from_definitions()


@pytest.fixture
def make_engine(clock, sink):
    """Factory for engines backed by in-memory tiers and a collecting sink."""
    def _make(config=None, tiers=None):
        if tiers is None:
            tiers = [InMemoryStorageTier("durable"), InMemoryStorageTier("session")]
        return LocaleEngine(config or EngineConfig(), tiers=tiers, sinks=[sink], clock=clock)

    return _make


@pytest.fixture
def broken_tier():
    """The BrokenTier class, for tests that need failing storage."""
    return BrokenTier
