"""Redirect loop detection."""
import time
from typing import Callable, Dict, List, Optional, Tuple

from locale_engine.cache import TTLCache
from locale_engine.utils.logging import get_logger

logger = get_logger(__name__)


class LoopGuard:
    """
    Time-windowed redirect history per (from_path, to_path) pair.

    A redirect is refused once `threshold` attempts for the same pair were
    recorded within the last `sub_window` seconds. History older than
    `window` seconds is pruned whenever a pair is touched, and whole pairs
    expire from the cache after `window` seconds of inactivity.
    """

    def __init__(
        self,
        window: float = 60.0,
        sub_window: float = 10.0,
        threshold: int = 3,
        clock: Callable[[], float] = time.time,
    ):
        self.window = window
        self.sub_window = sub_window
        self.threshold = threshold
        self._clock = clock
        self._history: TTLCache[Tuple[float, ...]] = TTLCache(default_ttl=window, clock=clock)
        self.blocked = 0

    @staticmethod
    def _key(from_path: str, to_path: str) -> str:
        return f"{from_path}->{to_path}"

    def check_and_record(self, from_path: str, to_path: str) -> bool:
        """
        Record a redirect attempt unless it would loop.

        Returns:
            True if the redirect may proceed, False if it must be suppressed
        """
        now = self._clock()
        allowed = True

        def record(history: Optional[Tuple[float, ...]]) -> Tuple[float, ...]:
            nonlocal allowed
            kept = tuple(t for t in (history or ()) if now - t < self.window)
            recent = sum(1 for t in kept if now - t < self.sub_window)
            if recent >= self.threshold:
                allowed = False
                return kept
            return kept + (now,)

        self._history.update(self._key(from_path, to_path), record)
        if not allowed:
            self.blocked += 1
            logger.warning(
                f"Redirect loop detected: {from_path} -> {to_path}",
                extra={"path": from_path, "action": "pass"},
            )
        return allowed

    def attempts(self, from_path: str, to_path: str) -> List[float]:
        history = self._history.get(self._key(from_path, to_path)) or ()
        now = self._clock()
        return [t for t in history if now - t < self.window]

    def reset(self) -> None:
        self._history.clear()
        self.blocked = 0

    def cleanup_expired(self) -> int:
        return self._history.cleanup_expired()

    def statistics(self) -> Dict[str, int]:
        pairs = 0
        timestamps = 0
        for key in self._history.keys():
            history = self._history.get(key)
            if history:
                pairs += 1
                timestamps += len(history)
        return {"tracked_pairs": pairs, "total_timestamps": timestamps, "blocked": self.blocked}
