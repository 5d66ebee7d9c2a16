"""
JSON codec for the persisted analysis history.

Stored form (UTF-8):

    {"version": 1, "records": [<record>, ...]}

Records keep the order of the history list (most recent first).
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from conversation_analysis.contracts.analysis_record import (
    ActionPlan,
    Advice,
    AnalysisRecord,
    DetectedPattern,
    Fingerprint,
    Severity,
    SuggestedReplies,
    TextRange,
)


HISTORY_FORMAT_VERSION = 1


class HistoryFormatError(ValueError):
    pass


def record_to_dict(record: AnalysisRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "created_at": record.created_at.isoformat(),
        "source_text": record.source_text,
        "summary": record.summary,
        "score": record.score,
        "safety_alert": record.safety_alert,
        "subtext_analysis": record.subtext_analysis,
        "fingerprint": {
            "tags": list(record.fingerprint.tags),
            "dominance_ratio": record.fingerprint.dominance_ratio,
            "validation_score": record.fingerprint.validation_score,
        },
        "patterns": [_pattern_to_dict(p) for p in record.patterns],
        "plan": {
            "conclusion": record.plan.conclusion,
            "advice": [
                {"title": a.title, "text": a.text, "priority": a.priority}
                for a in record.plan.advice
            ],
            "replies": {
                "deescalating": record.plan.replies.deescalating,
                "assertive": record.plan.replies.assertive,
                "rationale": record.plan.replies.rationale,
            },
        },
    }


def _pattern_to_dict(pattern: DetectedPattern) -> Dict[str, Any]:
    data = {
        "id": pattern.id,
        "name": pattern.name,
        "citation": pattern.citation,
        "explanation": pattern.explanation,
        "countermeasure": pattern.countermeasure,
        "severity": pattern.severity.value,
        "range": None,
    }
    if pattern.range is not None:
        data["range"] = [pattern.range.start, pattern.range.end]
    return data


def record_from_dict(data: Any) -> AnalysisRecord:
    try:
        return _record_from_dict(data)
    except HistoryFormatError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise HistoryFormatError(f"Malformed analysis record: {e!r}") from e


def _record_from_dict(data: Any) -> AnalysisRecord:
    data = _mapping(data, "record")
    fingerprint = _mapping(data["fingerprint"], "fingerprint")
    plan = _mapping(data["plan"], "plan")
    replies = _mapping(plan["replies"], "plan.replies")
    source_text = _str(data, "source_text")

    safety_alert = data["safety_alert"]
    if not isinstance(safety_alert, bool):
        raise HistoryFormatError("safety_alert: expected boolean")

    tags = _list(fingerprint, "tags", "fingerprint.tags")
    if not all(isinstance(tag, str) for tag in tags):
        raise HistoryFormatError("fingerprint.tags: expected list of strings")

    return AnalysisRecord(
        id=_str(data, "id"),
        created_at=datetime.fromisoformat(_str(data, "created_at")),
        source_text=source_text,
        summary=_str(data, "summary"),
        score=_number(data, "score"),
        safety_alert=safety_alert,
        subtext_analysis=_str(data, "subtext_analysis") if "subtext_analysis" in data else "",
        fingerprint=Fingerprint(
            tags=tuple(tags),
            dominance_ratio=_str(fingerprint, "dominance_ratio", "fingerprint.dominance_ratio"),
            validation_score=_number(fingerprint, "validation_score", "fingerprint.validation_score"),
        ),
        patterns=tuple(
            _pattern_from_dict(p, source_text, f"patterns[{i}]")
            for i, p in enumerate(_list(data, "patterns"))
        ),
        plan=ActionPlan(
            conclusion=_str(plan, "conclusion", "plan.conclusion"),
            advice=tuple(
                _advice_from_dict(a, f"plan.advice[{i}]")
                for i, a in enumerate(_list(plan, "advice", "plan.advice"))
            ),
            replies=SuggestedReplies(
                deescalating=_str(replies, "deescalating", "plan.replies.deescalating"),
                assertive=_str(replies, "assertive", "plan.replies.assertive"),
                rationale=_str(replies, "rationale", "plan.replies.rationale"),
            ),
        ),
    )


def _advice_from_dict(data: Any, path: str) -> Advice:
    data = _mapping(data, path)
    return Advice(
        title=_str(data, "title", f"{path}.title"),
        text=_str(data, "text", f"{path}.text"),
        priority=_str(data, "priority", f"{path}.priority"),
    )


def _pattern_from_dict(data: Any, source_text: str, path: str) -> DetectedPattern:
    data = _mapping(data, path)
    return DetectedPattern(
        id=_str(data, "id", f"{path}.id"),
        name=_str(data, "name", f"{path}.name"),
        citation=_str(data, "citation", f"{path}.citation"),
        explanation=_str(data, "explanation", f"{path}.explanation"),
        countermeasure=_str(data, "countermeasure", f"{path}.countermeasure"),
        severity=Severity(_str(data, "severity", f"{path}.severity")),
        range=_range(data.get("range"), source_text, f"{path}.range"),
    )


def _range(raw: Any, source_text: str, path: str) -> Optional[TextRange]:
    if raw is None:
        return None

    if not isinstance(raw, list) or len(raw) != 2:
        raise HistoryFormatError(f"{path}: expected [start, end]")

    start, end = raw
    for value in (start, end):
        if isinstance(value, bool) or not isinstance(value, int):
            raise HistoryFormatError(f"{path}: offsets must be integers")

    if not 0 <= start < end <= len(source_text):
        raise HistoryFormatError(
            f"{path}: [{start}, {end}] is outside the source text ({len(source_text)} chars)"
        )
    return TextRange(start=start, end=end)


def _mapping(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise HistoryFormatError(f"{path}: expected object")
    return value


def _str(data: Dict[str, Any], key: str, path: Optional[str] = None) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise HistoryFormatError(f"{path or key}: expected string")
    return value


def _number(data: Dict[str, Any], key: str, path: Optional[str] = None):
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HistoryFormatError(f"{path or key}: expected number")
    return value


def _list(data: Dict[str, Any], key: str, path: Optional[str] = None) -> list:
    value = data[key]
    if not isinstance(value, list):
        raise HistoryFormatError(f"{path or key}: expected list")
    return value


def dumps_history(records: Sequence[AnalysisRecord]) -> bytes:
    payload = {
        "version": HISTORY_FORMAT_VERSION,
        "records": [record_to_dict(r) for r in records],
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def loads_history(raw: bytes) -> List[AnalysisRecord]:
    """
    Decode a stored history list.

    Raises HistoryFormatError for anything that is not a complete,
    current-version history; partial lists are never returned.
    """
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise HistoryFormatError(f"History is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise HistoryFormatError("History payload must be an object")

    version = payload.get("version")
    if version != HISTORY_FORMAT_VERSION:
        raise HistoryFormatError(
            f"Unsupported history version: {version!r} "
            f"(expected {HISTORY_FORMAT_VERSION})"
        )

    records = payload.get("records")
    if not isinstance(records, list):
        raise HistoryFormatError("History 'records' must be a list")

    return [record_from_dict(item) for item in records]
