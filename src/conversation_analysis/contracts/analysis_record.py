from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
)


@dataclass(frozen=True)
class TextRange:
    """
    Half-open character offsets into the analysed source text.
    """

    start: int
    end: int


@dataclass(frozen=True)
class DetectedPattern:
    id: str
    name: str
    citation: str
    explanation: str
    countermeasure: str
    severity: Severity

    range: Optional[TextRange] = None   # None = citation not found in source


@dataclass(frozen=True)
class Fingerprint:
    tags: Tuple[str, ...]
    dominance_ratio: str
    validation_score: float


@dataclass(frozen=True)
class Advice:
    title: str
    text: str
    priority: str


@dataclass(frozen=True)
class SuggestedReplies:
    deescalating: str
    assertive: str
    rationale: str


@dataclass(frozen=True)
class ActionPlan:
    conclusion: str
    advice: Tuple[Advice, ...]
    replies: SuggestedReplies


@dataclass(frozen=True)
class AnalysisRecord:
    """
    Stable contract for one finished analysis.

    Built once by the ResultAssembler and never mutated afterwards.
    `patterns` keeps the order in which the analyzer emitted them.
    """

    id: str
    created_at: datetime

    source_text: str

    summary: str
    score: Union[int, float]
    safety_alert: bool
    subtext_analysis: str

    fingerprint: Fingerprint
    patterns: Tuple[DetectedPattern, ...]
    plan: ActionPlan


@dataclass(frozen=True)
class PlainSegment:
    text: str


@dataclass(frozen=True)
class EvidenceSegment:
    text: str
    pattern_id: str


Segment = Union[PlainSegment, EvidenceSegment]
