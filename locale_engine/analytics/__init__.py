from locale_engine.analytics.events import AnalyticsEvent
from locale_engine.analytics.sinks import AnalyticsSink, CollectingSink, HttpSink, LoggingSink
from locale_engine.analytics.tracker import AnalyticsTracker

__all__ = [
    "AnalyticsEvent",
    "AnalyticsSink",
    "AnalyticsTracker",
    "CollectingSink",
    "HttpSink",
    "LoggingSink",
]
