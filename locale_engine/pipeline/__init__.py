from locale_engine.pipeline.orchestrator import PipelineOrchestrator, aggregate
from locale_engine.pipeline.stages import (
    LoopGuardStage,
    PipelineStage,
    ProtectionStage,
    RedirectPolicyStage,
    ValidationStage,
)

__all__ = [
    "LoopGuardStage",
    "PipelineOrchestrator",
    "PipelineStage",
    "ProtectionStage",
    "RedirectPolicyStage",
    "ValidationStage",
    "aggregate",
]
