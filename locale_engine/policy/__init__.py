from locale_engine.policy.evaluator import RedirectPolicyEvaluator
from locale_engine.policy.loop_guard import LoopGuard
from locale_engine.policy.models import (
    Action,
    PipelineContext,
    PipelineResult,
    RedirectDecision,
    RedirectReason,
    RedirectStatus,
    StageResult,
)

__all__ = [
    "Action",
    "LoopGuard",
    "PipelineContext",
    "PipelineResult",
    "RedirectDecision",
    "RedirectPolicyEvaluator",
    "RedirectReason",
    "RedirectStatus",
    "StageResult",
]
