"""Pipeline stages. Each takes the execution context and returns a StageResult."""
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING

from locale_engine.detection.chain import DetectionChain
from locale_engine.locales.models import ValidationOutcome
from locale_engine.locales.paths import parse_prefix
from locale_engine.locales.registry import LocaleRegistry
from locale_engine.locales.validation import validate_locale_code
from locale_engine.policy.evaluator import RedirectPolicyEvaluator
from locale_engine.policy.loop_guard import LoopGuard
from locale_engine.policy.models import Action, PipelineContext, PipelineResult, StageResult
from locale_engine.utils.errors import (
    InvalidLocaleFormatError,
    RedirectLoopDetectedError,
    UnsupportedLocaleError,
)

if TYPE_CHECKING:
    from locale_engine.config import ValidationSettings


class PipelineStage(ABC):
    name: str = "stage"

    @abstractmethod
    async def run(self, context: PipelineContext) -> StageResult:
        ...


class ProtectionStage(PipelineStage):
    """Route protection; runs first so a denial wins regardless of locale."""

    name = "protection"

    def __init__(self, evaluator: RedirectPolicyEvaluator):
        self.evaluator = evaluator

    async def run(self, context):
        blocked = self.evaluator.check_protection(context.path, context.permissions)
        return blocked or StageResult(stage=self.name, action=Action.PASS)


class ValidationStage(PipelineStage):
    """Classifies the path prefix and validates an unsupported one."""

    name = "validation"

    def __init__(self, registry: LocaleRegistry, settings: "ValidationSettings"):
        self.registry = registry
        self.settings = settings

    async def run(self, context):
        prefix = parse_prefix(context.path, self.registry)
        context.prefix = prefix

        if prefix.kind == "none":
            return StageResult(stage=self.name, action=Action.PASS)

        if prefix.kind == "canonical":
            context.validation = ValidationOutcome(is_valid=True, normalized=prefix.locale.code)
            return StageResult(stage=self.name, action=Action.PASS, locale=prefix.locale.code)

        outcome = validate_locale_code(
            prefix.token,
            self.registry,
            allow_fallback=self.settings.allow_fallback,
            strict=self.settings.strict,
        )
        context.validation = outcome
        metadata = {"issues": list(outcome.issues)}

        # Aliases and deprecated codes are resolved by the redirect policy
        if prefix.kind != "invalid" or not outcome.rejected:
            return StageResult(stage=self.name, action=Action.PASS, metadata=metadata)

        if outcome.format_valid:
            error = UnsupportedLocaleError(f"Unsupported locale: {outcome.normalized}", {"token": prefix.token})
        else:
            error = InvalidLocaleFormatError(f"Malformed locale code: {prefix.token}", {"token": prefix.token})
        return StageResult(stage=self.name, action=Action.BLOCK, error=error.to_dict(), metadata=metadata)


class RedirectPolicyStage(PipelineStage):
    """Applies the redirect policy, running detection only when a target is needed."""

    name = "redirect_policy"

    def __init__(self, evaluator: RedirectPolicyEvaluator, detection: DetectionChain):
        self.evaluator = evaluator
        self.detection = detection

    async def run(self, context):
        prefix = context.prefix or parse_prefix(context.path, self.evaluator.registry)
        if self.evaluator.needs_detection(prefix, context.validation):
            languages = list(context.client_languages)
            if context.locale:
                languages.insert(0, context.locale)
            context.detection = await self.detection.detect(context.path, languages)
        return self.evaluator.evaluate(context.path, prefix, context.validation, context.detection)


class LoopGuardStage:
    """
    Last check before a redirect leaves the engine.

    Runs on the aggregated result (cached or fresh) rather than inside the
    cached stage list, so every emitted redirect is counted.
    """

    name = "loop_guard"

    def __init__(self, guard: LoopGuard):
        self.guard = guard

    async def run(self, context: PipelineContext, result: PipelineResult) -> PipelineResult:
        if context.warmup or not result.should_redirect or result.redirect_target is None:
            return result
        if self.guard.check_and_record(context.path, result.redirect_target):
            return result

        warning = RedirectLoopDetectedError(
            f"Redirect loop detected: {context.path} -> {result.redirect_target}",
            {"from_path": context.path, "to_path": result.redirect_target},
        )
        metadata = dict(result.metadata)
        metadata["warning"] = warning.to_dict()
        metadata["suppressed_redirect"] = result.redirect_target
        metadata["suppressed_action"] = result.action.value
        return replace(
            result,
            action=Action.PASS,
            redirect_target=None,
            status_code=None,
            reason=None,
            metadata=metadata,
        )
