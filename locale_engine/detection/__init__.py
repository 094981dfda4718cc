from locale_engine.detection.chain import DetectionChain
from locale_engine.detection.negotiation import parse_accept_language
from locale_engine.detection.strategies import (
    ClientLanguageStrategy,
    DefaultStrategy,
    DetectionStrategy,
    PathStrategy,
    PersistedPreferenceStrategy,
)

__all__ = [
    "ClientLanguageStrategy",
    "DefaultStrategy",
    "DetectionChain",
    "DetectionStrategy",
    "PathStrategy",
    "PersistedPreferenceStrategy",
    "parse_accept_language",
]
