"""Pipeline orchestration: ordered stages, caching, aggregation and analytics."""
import time
from copy import deepcopy
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from locale_engine.analytics.events import AnalyticsEvent
from locale_engine.cache import TTLCache
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.pipeline.stages import LoopGuardStage, PipelineStage
from locale_engine.policy.models import (
    ACTION_PRIORITY,
    Action,
    PipelineContext,
    PipelineResult,
    StageResult,
)
from locale_engine.utils.errors import PipelineExecutionError
from locale_engine.utils.logging import get_logger

if TYPE_CHECKING:
    from locale_engine.analytics.tracker import AnalyticsTracker
    from locale_engine.config import PipelineSettings

logger = get_logger(__name__)


def aggregate(results: Sequence[StageResult]) -> Optional[StageResult]:
    """Decisive result: BLOCK > REDIRECT > CORRECT > PASS, earliest on ties."""
    decisive: Optional[StageResult] = None
    for result in results:
        if decisive is None or ACTION_PRIORITY[result.action] > ACTION_PRIORITY[decisive.action]:
            decisive = result
    return decisive


class PipelineOrchestrator:
    """
    Runs the stages for one navigation and returns a single decision.

    Decisions are cached per (path, locale context, identity, permissions,
    client languages). The loop guard runs after the cache so cached
    redirects are still counted.
    """

    def __init__(
        self,
        stages: Sequence[PipelineStage],
        loop_guard: LoopGuardStage,
        registry: LocaleRegistry,
        settings: "PipelineSettings",
        tracker: Optional["AnalyticsTracker"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.stages: List[PipelineStage] = list(stages)
        self.loop_guard = loop_guard
        self.registry = registry
        self.settings = settings
        self.tracker = tracker
        self._clock = clock
        self._cache: TTLCache[PipelineResult] = TTLCache(
            default_ttl=settings.cache_ttl_seconds,
            max_size=settings.cache_max_size,
            clock=clock,
        )
        self.executions = 0
        self.cache_hits = 0
        self.errors = 0
        self.total_duration_ms = 0.0

    @property
    def cache(self) -> TTLCache[PipelineResult]:
        return self._cache

    @staticmethod
    def cache_key(context: PipelineContext) -> Tuple:
        return (
            context.path,
            context.locale,
            context.identity,
            tuple(sorted(context.permissions)),
            tuple(context.client_languages),
        )

    @staticmethod
    def _detached(result: PipelineResult, **flags: Any) -> PipelineResult:
        """Copy of `result` sharing no mutable state with the cached entry."""
        return replace(
            result,
            metadata={**deepcopy(result.metadata), **flags},
            error=deepcopy(result.error),
        )

    async def execute(self, context: PipelineContext) -> PipelineResult:
        start = time.perf_counter()
        self.executions += 1
        result: Optional[PipelineResult] = None
        stage_count = 0
        cache_hit = False
        failed = False
        error: Optional[Dict[str, Any]] = None

        try:
            key = self.cache_key(context)
            cached = None if context.warmup else self._cache.get(key)
            if cached is not None:
                cache_hit = True
                self.cache_hits += 1
                result = self._detached(cached, cache_hit=True)
            else:
                result, stage_count = await self._run_stages(context)
                if result.action != Action.ERROR and not context.warmup:
                    self._cache.set(key, result)
                    result = self._detached(result)

            result = await self.loop_guard.run(context, result)
            error = result.error
            failed = result.action == Action.ERROR
            return result
        except PipelineExecutionError as e:
            error = e.to_dict()
            failed = True
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.total_duration_ms += duration_ms
            if failed:
                self.errors += 1
            if duration_ms > self.settings.slow_threshold_ms:
                logger.warning(
                    f"Slow pipeline execution for {context.path}: {duration_ms:.1f}ms",
                    extra={"path": context.path, "duration_ms": round(duration_ms, 2)},
                )
            self._track(context, result, stage_count, duration_ms, cache_hit, error)

    async def _run_stages(self, context: PipelineContext):
        """Run stages until one short-circuits. Returns (result, stages run)."""
        for stage in self.stages:
            try:
                stage_result = await stage.run(context)
            except Exception as e:
                failure = PipelineExecutionError(
                    f"Stage {stage.name} failed: {e}", {"stage": stage.name, "path": context.path}
                )
                logger.error(failure.message, extra={"path": context.path, "stage": stage.name})
                if self.settings.error_mode == "strict":
                    raise failure from e
                context.results.append(
                    StageResult(stage=stage.name, action=Action.ERROR, error=failure.to_dict())
                )
                return self._error_result(context, failure), len(context.results)

            context.results.append(stage_result)
            if stage_result.short_circuits:
                break

        return self._build_result(context), len(context.results)

    def _fallback_locale(self, context: PipelineContext) -> str:
        for stage_result in context.results:
            if stage_result.locale:
                return stage_result.locale
        if context.prefix is not None and context.prefix.kind == "canonical":
            return context.prefix.locale.code
        if context.locale and self.registry.is_supported(context.locale):
            return context.locale
        return self.registry.default.code

    def _base_metadata(self, context: PipelineContext) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "stages": [r.stage for r in context.results],
            "stage_count": len(context.results),
        }
        if context.detection is not None:
            metadata["detection_source"] = context.detection.source.value
            metadata["confidence"] = context.detection.confidence
        if context.validation is not None and context.validation.issues:
            metadata["validation_issues"] = list(context.validation.issues)
        if context.warmup:
            metadata["warmup"] = True
        return metadata

    def _build_result(self, context: PipelineContext) -> PipelineResult:
        decisive = aggregate(context.results)
        metadata = self._base_metadata(context)
        if decisive is None:
            return PipelineResult(action=Action.PASS, locale=self._fallback_locale(context), metadata=metadata)

        metadata.update(decisive.metadata)
        metadata["decided_by"] = decisive.stage
        locale = decisive.locale or self._fallback_locale(context)

        if decisive.action == Action.BLOCK:
            if decisive.required_permissions:
                metadata["required_permissions"] = list(decisive.required_permissions)
            return PipelineResult(action=Action.BLOCK, locale=locale, error=decisive.error, metadata=metadata)

        if decisive.redirect is not None:
            metadata["redirect"] = decisive.redirect.to_dict()
            return PipelineResult(
                action=decisive.action,
                locale=locale,
                redirect_target=decisive.redirect.to_path,
                status_code=int(decisive.redirect.status),
                reason=decisive.redirect.reason.value,
                metadata=metadata,
            )

        return PipelineResult(action=decisive.action, locale=locale, metadata=metadata)

    def _error_result(self, context: PipelineContext, failure: PipelineExecutionError) -> PipelineResult:
        metadata = self._base_metadata(context)
        metadata["degraded"] = True
        return PipelineResult(
            action=Action.ERROR,
            locale=self._fallback_locale(context),
            error=failure.to_dict(),
            metadata=metadata,
        )

    def _track(
        self,
        context: PipelineContext,
        result: Optional[PipelineResult],
        stage_count: int,
        duration_ms: float,
        cache_hit: bool,
        error: Optional[Dict[str, Any]],
    ) -> None:
        if self.tracker is None:
            return
        try:
            self.tracker.track(
                AnalyticsEvent(
                    type="pipeline",
                    path=context.path,
                    locale=result.locale if result is not None else None,
                    result=result.action.value if result is not None else Action.ERROR.value,
                    timestamp=self._clock(),
                    error=error,
                    properties={
                        "stage_count": stage_count,
                        "duration_ms": round(duration_ms, 3),
                        "cache_hit": cache_hit,
                        "warmup": context.warmup,
                    },
                )
            )
        except Exception as e:
            logger.debug(f"Could not record pipeline event: {e}")

    def clear_cache(self) -> None:
        self._cache.clear()

    def cleanup_expired(self) -> int:
        return self._cache.cleanup_expired()

    def statistics(self) -> Dict[str, Any]:
        return {
            "executions": self.executions,
            "cache_hits": self.cache_hits,
            "errors": self.errors,
            "error_rate": self.errors / self.executions if self.executions else 0.0,
            "average_duration_ms": self.total_duration_ms / self.executions if self.executions else 0.0,
            "cache_size": len(self._cache),
        }
