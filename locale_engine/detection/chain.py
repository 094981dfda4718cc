"""Ordered locale detection."""
import time
from typing import Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from locale_engine.analytics.events import AnalyticsEvent
from locale_engine.detection.strategies import DetectionStrategy
from locale_engine.locales.models import DetectionResult, DetectionSource
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.utils.logging import get_logger

if TYPE_CHECKING:
    from locale_engine.analytics.tracker import AnalyticsTracker

logger = get_logger(__name__)


class DetectionChain:
    """
    Runs strategies in priority order and returns the first result.

    A strategy that raises is treated as having found nothing; `detect`
    itself never raises.
    """

    def __init__(
        self,
        strategies: Sequence[DetectionStrategy],
        registry: LocaleRegistry,
        tracker: Optional["AnalyticsTracker"] = None,
        report_detections: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.strategies: List[DetectionStrategy] = list(strategies)
        self.registry = registry
        self.tracker = tracker
        self.report_detections = report_detections
        self._clock = clock
        self.detections = 0
        self.by_source: Dict[str, int] = {}
        self.strategy_errors = 0

    async def detect(self, path: str, client_languages: Optional[Sequence[str]] = None) -> DetectionResult:
        languages = list(client_languages or ())
        self.detections += 1

        for strategy in self.strategies:
            try:
                result = await strategy.detect(path, languages)
            except Exception as e:
                self.strategy_errors += 1
                logger.warning(
                    f"Detection strategy {strategy.name} failed: {e}",
                    extra={"path": path, "stage": strategy.name},
                )
                continue
            if result is not None:
                self._record(path, result)
                return result

        result = DetectionResult(self.registry.default, DetectionSource.DEFAULT, 0.0, None, "default")
        self._record(path, result)
        return result

    def _record(self, path: str, result: DetectionResult) -> None:
        source = result.source.value
        self.by_source[source] = self.by_source.get(source, 0) + 1
        logger.debug(
            f"Detected {result.code} via {source} ({result.confidence})",
            extra={"path": path, "locale": result.code},
        )
        if self.tracker is None or not self.report_detections:
            return
        try:
            self.tracker.track(
                AnalyticsEvent(
                    type="detection",
                    path=path,
                    locale=result.code,
                    result=source,
                    timestamp=self._clock(),
                    properties={
                        "confidence": result.confidence,
                        "match_type": result.match_type,
                        "original_signal": result.original_signal,
                    },
                )
            )
        except Exception as e:
            logger.debug(f"Could not record detection event: {e}")

    def statistics(self) -> Dict[str, object]:
        return {
            "detections": self.detections,
            "by_source": dict(self.by_source),
            "strategy_errors": self.strategy_errors,
        }
