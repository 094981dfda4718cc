"""Destinations for analytics batches."""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import httpx

from locale_engine.analytics.events import AnalyticsEvent
from locale_engine.utils.decorators import retry
from locale_engine.utils.errors import AnalyticsDeliveryError
from locale_engine.utils.logging import get_logger

logger = get_logger(__name__)


class AnalyticsSink(ABC):
    name: str = "sink"

    @abstractmethod
    async def send(self, events: Sequence[AnalyticsEvent]) -> None:
        """Deliver one batch; raise to have the batch re-queued."""


class LoggingSink(AnalyticsSink):
    """Writes each event to the log."""

    name = "logging"

    def __init__(self, logger_name: str = "locale_engine.analytics.events"):
        self._logger = get_logger(logger_name)

    async def send(self, events):
        for event in events:
            self._logger.info(
                f"{event.type}: {event.result}",
                extra={"path": event.path, "locale": event.locale, "action": event.result},
            )


class CollectingSink(AnalyticsSink):
    """Keeps delivered events in memory."""

    name = "collecting"

    def __init__(self):
        self.events: List[AnalyticsEvent] = []
        self.batches = 0

    async def send(self, events):
        self.batches += 1
        self.events.extend(events)

    def of_type(self, event_type: str) -> List[AnalyticsEvent]:
        return [e for e in self.events if e.type == event_type]


class HttpSink(AnalyticsSink):
    """POSTs batches as {"events": [...]} to a collector endpoint."""

    name = "http"

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._transport = transport

    @retry(max_attempts=3, delay=0.5, exceptions=(httpx.HTTPError,))
    async def _post(self, payload: Dict[str, object]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.post(self.url, json=payload, headers=self.headers)

    async def send(self, events):
        payload = {"events": [e.to_dict() for e in events]}
        try:
            resp = await self._post(payload)
        except httpx.HTTPError as e:
            logger.error(f"Analytics endpoint unreachable: {e}")
            raise AnalyticsDeliveryError(str(e), {"url": self.url})

        if resp.status_code >= 300:
            raise AnalyticsDeliveryError(
                f"Analytics endpoint returned {resp.status_code}",
                {"url": self.url, "status_code": resp.status_code},
            )
