"""Records owned by the persistence manager."""
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PersistedPreference:
    locale: str
    source: str
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> Optional["PersistedPreference"]:
        """Parse a stored record; anything unreadable counts as absent."""
        try:
            data = json.loads(raw)
            return cls(
                locale=str(data["locale"]),
                source=str(data.get("source", "unknown")),
                timestamp=float(data["timestamp"]),
                metadata=dict(data.get("metadata") or {}),
            )
        except (ValueError, TypeError, KeyError):
            return None


@dataclass(frozen=True)
class TierWriteResult:
    tier: str
    success: bool
    error: Optional[str] = None
