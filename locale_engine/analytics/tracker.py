"""Buffered analytics delivery."""
import asyncio
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from locale_engine.analytics.events import AnalyticsEvent
from locale_engine.analytics.sinks import AnalyticsSink
from locale_engine.utils.decorators import timeout
from locale_engine.utils.logging import get_logger

logger = get_logger(__name__)

STATS_WINDOW_SECONDS = 24 * 60 * 60


class AnalyticsTracker:
    """
    Collects events and delivers them to sinks in batches.

    `track` never blocks and never raises. A batch is flushed once
    `batch_size` events are pending (when an event loop is running), by the
    engine's periodic flush, and on shutdown. A batch every sink rejected is
    put back, as long as no more than twice `batch_size` events are pending.
    """

    def __init__(
        self,
        sinks: Iterable[AnalyticsSink] = (),
        batch_size: int = 10,
        max_events: int = 200,
        flush_timeout: float = 5.0,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.sinks: List[AnalyticsSink] = list(sinks)
        self.batch_size = max(1, batch_size)
        self.max_events = max_events
        self.flush_timeout = flush_timeout
        self.enabled = enabled
        self._clock = clock
        self._pending: List[AnalyticsEvent] = []
        self._history: Deque[AnalyticsEvent] = deque(maxlen=max_events)
        self._flush_task: Optional[asyncio.Task] = None
        self._flush_lock = asyncio.Lock()
        self.tracked = 0
        self.delivered = 0
        self.dropped = 0
        self.failed_batches = 0

    def add_sink(self, sink: AnalyticsSink) -> None:
        if sink not in self.sinks:
            self.sinks.append(sink)

    def remove_sink(self, sink: AnalyticsSink) -> bool:
        if sink in self.sinks:
            self.sinks.remove(sink)
            return True
        return False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def track(self, event: AnalyticsEvent) -> None:
        if not self.enabled:
            return
        self.tracked += 1
        self._history.append(event)
        self._pending.append(event)
        if len(self._pending) > self.max_events:
            overflow = len(self._pending) - self.max_events
            del self._pending[:overflow]
            self.dropped += overflow
        if len(self._pending) >= self.batch_size:
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = loop.create_task(self.flush())

    async def wait_pending(self) -> None:
        """Wait for a flush scheduled by `track`, if one is running."""
        if self._flush_task is not None and not self._flush_task.done():
            await self._flush_task

    async def flush(self) -> int:
        """Deliver pending events. Returns how many were delivered."""
        async with self._flush_lock:
            if not self.sinks:
                self._pending.clear()
                return 0

            delivered = 0
            while self._pending:
                batch = self._pending[: self.batch_size]
                del self._pending[: self.batch_size]
                if await self._deliver(batch):
                    delivered += len(batch)
                    continue

                self.failed_batches += 1
                if len(self._pending) + len(batch) <= 2 * self.batch_size:
                    self._pending[:0] = batch
                else:
                    self.dropped += len(batch)
                    logger.warning(f"Dropped {len(batch)} analytics events after failed delivery")
                break

            self.delivered += delivered
            return delivered

    async def _deliver(self, batch: List[AnalyticsEvent]) -> bool:
        sinks = list(self.sinks)
        outcomes = await asyncio.gather(
            *(timeout(self.flush_timeout)(sink.send)(batch) for sink in sinks),
            return_exceptions=True,
        )
        ok = False
        for sink, outcome in zip(sinks, outcomes):
            if isinstance(outcome, TimeoutError):
                logger.warning(f"Analytics sink {sink.name} timed out after {self.flush_timeout}s")
            elif isinstance(outcome, BaseException):
                logger.warning(f"Analytics sink {sink.name} failed: {outcome}")
            else:
                ok = True
        return ok

    def get_stats(self, window_seconds: float = STATS_WINDOW_SECONDS) -> Dict[str, Any]:
        """Totals and breakdowns over events tracked within the window."""
        now = self._clock()
        recent = [e for e in self._history if now - e.timestamp <= window_seconds]

        by_type: Dict[str, int] = {}
        by_result: Dict[str, int] = {}
        by_locale: Dict[str, int] = {}
        by_error: Dict[str, int] = {}
        for event in recent:
            by_type[event.type] = by_type.get(event.type, 0) + 1
            by_result[event.result] = by_result.get(event.result, 0) + 1
            if event.locale:
                by_locale[event.locale] = by_locale.get(event.locale, 0) + 1
            if event.error:
                error_type = str(event.error.get("type", "unknown"))
                by_error[error_type] = by_error.get(error_type, 0) + 1

        errors = sum(by_error.values())
        return {
            "total_events": len(recent),
            "tracked": self.tracked,
            "delivered": self.delivered,
            "pending": len(self._pending),
            "dropped": self.dropped,
            "failed_batches": self.failed_batches,
            "error_rate": errors / len(recent) if recent else 0.0,
            "by_type": by_type,
            "by_result": by_result,
            "by_locale": by_locale,
            "by_error_type": by_error,
        }
