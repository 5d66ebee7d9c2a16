import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Tuple
from uuid import uuid4

from conversation_analysis.contracts.analysis_record import (
    ActionPlan,
    Advice,
    AnalysisRecord,
    DetectedPattern,
    Fingerprint,
    Severity,
    SuggestedReplies,
)
from conversation_analysis.core.errors import SchemaValidationError
from conversation_analysis.core.locator import locate


logger = logging.getLogger(__name__)


IdGenerator = Callable[[], str]
Clock = Callable[[], datetime]


def default_id_generator() -> str:
    return str(uuid4())


def default_clock() -> datetime:
    return datetime.now(timezone.utc)


# Labels emitted by older German-language prompts
_SEVERITY_ALIASES = {
    "niedrig": Severity.LOW,
    "mittel": Severity.MEDIUM,
    "hoch": Severity.HIGH,
    "kritisch": Severity.CRITICAL,
}


class ResultAssembler:
    """
    Turns a raw analyzer response into an immutable AnalysisRecord.

    Responsibilities:
    - validate the untrusted response shape
    - assign ids and the creation timestamp
    - locate every pattern citation in the source text

    Does NOT persist anything: the caller decides what goes to history.
    """

    def __init__(
        self,
        id_generator: IdGenerator = default_id_generator,
        clock: Clock = default_clock,
    ):
        self.id_generator = id_generator
        self.clock = clock

    def assemble(self, raw_response: Any, source_text: str) -> AnalysisRecord:
        if not isinstance(raw_response, Mapping):
            raise SchemaValidationError("<root>", "response must be a JSON object")

        summary = _require_str(raw_response, "summary", "summary")
        score = _require_number(raw_response, "score", "score")

        safety_alert = raw_response.get("safety_alert", False)
        if not isinstance(safety_alert, bool):
            raise SchemaValidationError("safety_alert", "expected boolean")

        subtext_analysis = raw_response.get("subtext_analysis", "")
        if not isinstance(subtext_analysis, str):
            raise SchemaValidationError("subtext_analysis", "expected string")

        fingerprint = _build_fingerprint(raw_response)
        plan = _build_plan(raw_response)
        raw_patterns = _require_list(raw_response, "patterns", "patterns")

        # validate everything before locating or generating ids
        parsed = [
            _parse_pattern(raw, f"patterns[{index}]")
            for index, raw in enumerate(raw_patterns)
        ]

        patterns = tuple(
            DetectedPattern(
                id=self.id_generator(),
                name=fields["name"],
                citation=fields["citation"],
                explanation=fields["explanation"],
                countermeasure=fields["countermeasure"],
                severity=severity,
                range=locate(source_text, fields["citation"]),
            )
            for fields, severity in parsed
        )

        unlocated = sum(1 for p in patterns if p.range is None)
        if unlocated:
            logger.info(
                "%d of %d citations not found in source text",
                unlocated,
                len(patterns),
            )

        return AnalysisRecord(
            id=self.id_generator(),
            created_at=self.clock(),
            source_text=source_text,
            summary=summary,
            score=score,
            safety_alert=safety_alert,
            subtext_analysis=subtext_analysis,
            fingerprint=fingerprint,
            patterns=patterns,
            plan=plan,
        )


def parse_severity(value: Any, path: str) -> Severity:
    if not isinstance(value, str):
        raise SchemaValidationError(path, "expected string")

    label = value.strip().lower()
    if label in _SEVERITY_ALIASES:
        return _SEVERITY_ALIASES[label]

    try:
        return Severity(label)
    except ValueError:
        allowed = ", ".join(s.value for s in Severity)
        raise SchemaValidationError(
            path, f"unknown severity '{value}' (expected one of: {allowed})"
        ) from None


def _parse_pattern(raw: Any, path: str) -> Tuple[Dict[str, str], Severity]:
    if not isinstance(raw, Mapping):
        raise SchemaValidationError(path, "expected object")

    fields = {
        key: _require_str(raw, key, f"{path}.{key}")
        for key in ("name", "citation", "explanation", "countermeasure")
    }

    if "severity" not in raw:
        raise SchemaValidationError(f"{path}.severity", "missing required field")
    severity = parse_severity(raw["severity"], f"{path}.severity")

    return fields, severity


def _build_fingerprint(raw_response: Mapping) -> Fingerprint:
    raw = _require_mapping(raw_response, "fingerprint", "fingerprint")

    tags = _require_list(raw, "tags", "fingerprint.tags")
    for index, tag in enumerate(tags):
        if not isinstance(tag, str):
            raise SchemaValidationError(f"fingerprint.tags[{index}]", "expected string")

    return Fingerprint(
        tags=tuple(tags),
        dominance_ratio=_require_str(raw, "dominance_ratio", "fingerprint.dominance_ratio"),
        validation_score=_require_number(raw, "validation_score", "fingerprint.validation_score"),
    )


def _build_plan(raw_response: Mapping) -> ActionPlan:
    raw = _require_mapping(raw_response, "plan", "plan")

    advice: List[Advice] = []
    for index, item in enumerate(_require_list(raw, "advice", "plan.advice")):
        path = f"plan.advice[{index}]"
        if not isinstance(item, Mapping):
            raise SchemaValidationError(path, "expected object")
        advice.append(
            Advice(
                title=_require_str(item, "title", f"{path}.title"),
                text=_require_str(item, "text", f"{path}.text"),
                priority=_require_str(item, "priority", f"{path}.priority"),
            )
        )

    replies = _require_mapping(raw, "replies", "plan.replies")

    return ActionPlan(
        conclusion=_require_str(raw, "conclusion", "plan.conclusion"),
        advice=tuple(advice),
        replies=SuggestedReplies(
            deescalating=_require_str(replies, "deescalating", "plan.replies.deescalating"),
            assertive=_require_str(replies, "assertive", "plan.replies.assertive"),
            rationale=_require_str(replies, "rationale", "plan.replies.rationale"),
        ),
    )


# --- field helpers ---

def _require(raw: Mapping, key: str, path: str) -> Any:
    if key not in raw or raw[key] is None:
        raise SchemaValidationError(path, "missing required field")
    return raw[key]


def _require_str(raw: Mapping, key: str, path: str) -> str:
    value = _require(raw, key, path)
    if not isinstance(value, str):
        raise SchemaValidationError(path, "expected string")
    return value


def _require_number(raw: Mapping, key: str, path: str):
    value = _require(raw, key, path)
    # bool is an int subclass, but `true` is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaValidationError(path, "expected number")
    return value


def _require_list(raw: Mapping, key: str, path: str) -> list:
    value = _require(raw, key, path)
    if not isinstance(value, list):
        raise SchemaValidationError(path, "expected list")
    return value


def _require_mapping(raw: Mapping, key: str, path: str) -> Mapping:
    value = _require(raw, key, path)
    if not isinstance(value, Mapping):
        raise SchemaValidationError(path, "expected object")
    return value
