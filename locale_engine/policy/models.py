"""Decision types shared by the policy evaluator and the pipeline."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from locale_engine.locales.models import DetectionResult, PrefixMatch, ValidationOutcome


class Action(str, Enum):
    PASS = "pass"
    REDIRECT = "redirect"
    BLOCK = "block"
    CORRECT = "correct"
    ERROR = "error"


# Higher wins when several stages report
ACTION_PRIORITY = {
    Action.BLOCK: 4,
    Action.REDIRECT: 3,
    Action.CORRECT: 2,
    Action.PASS: 1,
    Action.ERROR: 0,
}


class RedirectReason(str, Enum):
    NO_LOCALE = "no-locale"
    INVALID_LOCALE = "invalid-locale"
    DEPRECATED_LOCALE = "deprecated-locale"
    FALLBACK = "fallback"
    NON_CANONICAL = "non-canonical"


class RedirectStatus(IntEnum):
    PERMANENT = 301
    TEMPORARY = 302
    SEE_OTHER = 303


@dataclass(frozen=True)
class RedirectDecision:
    needed: bool
    reason: RedirectReason
    from_path: str
    to_path: str
    status: RedirectStatus
    detection_source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "needed": self.needed,
            "reason": self.reason.value,
            "from_path": self.from_path,
            "to_path": self.to_path,
            "status": int(self.status),
            "detection_source": self.detection_source,
        }


@dataclass
class StageResult:
    """What one pipeline stage decided."""

    stage: str
    action: Action
    locale: Optional[str] = None
    redirect: Optional[RedirectDecision] = None
    required_permissions: Tuple[str, ...] = ()
    error: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def short_circuits(self) -> bool:
        return self.action in (Action.BLOCK, Action.REDIRECT)


@dataclass
class PipelineContext:
    """
    Input of one pipeline execution.

    Stages read the request fields and only add to the accumulated ones.
    """

    path: str
    permissions: FrozenSet[str] = frozenset()
    client_languages: Tuple[str, ...] = ()
    identity: Optional[str] = None
    locale: Optional[str] = None  # locale context from the caller, if any
    navigation_options: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    warmup: bool = False

    # Accumulated by stages
    prefix: Optional[PrefixMatch] = None
    validation: Optional[ValidationOutcome] = None
    detection: Optional[DetectionResult] = None
    results: List[StageResult] = field(default_factory=list)


@dataclass
class PipelineResult:
    action: Action
    locale: Optional[str] = None
    redirect_target: Optional[str] = None
    status_code: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def should_proceed(self) -> bool:
        """PASS, and ERROR degraded to best-effort rendering."""
        return self.action in (Action.PASS, Action.ERROR)

    @property
    def should_redirect(self) -> bool:
        return self.action in (Action.REDIRECT, Action.CORRECT)

    @property
    def should_block(self) -> bool:
        return self.action == Action.BLOCK

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action.value, "locale": self.locale}
        if self.redirect_target is not None:
            data["redirect_target"] = self.redirect_target
            data["status_code"] = self.status_code
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = self.error
        data["metadata"] = self.metadata
        return data
