"""Analytics event record."""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class AnalyticsEvent:
    type: str  # detection | pipeline | preference
    path: Optional[str]
    locale: Optional[str]
    result: str
    timestamp: float
    error: Optional[Dict[str, Any]] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["error"] is None:
            del data["error"]
        return data
