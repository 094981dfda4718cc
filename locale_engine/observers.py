"""Locale change notifications."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocaleChangeEvent:
    locale: str
    previous: Optional[str]
    source: str
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[LocaleChangeEvent], Any]


class LocaleChangeNotifier:
    """Observer registry; listeners may be plain callables or coroutine functions."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def add(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: Listener) -> bool:
        try:
            self._listeners.remove(listener)
            return True
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._listeners)

    async def notify(self, event: LocaleChangeEvent) -> int:
        """Deliver `event` to every listener. Returns how many succeeded."""
        delivered = 0
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Locale change listener {getattr(listener, '__name__', listener)!r} failed: {e}",
                    extra={"locale": event.locale},
                )
        return delivered
