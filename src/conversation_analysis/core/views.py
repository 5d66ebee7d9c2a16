"""
Read-only views over an AnalysisRecord used by report renderers.

None of these reorder `record.patterns` itself.
"""
from collections import Counter
from typing import Dict, List, Tuple

from conversation_analysis.contracts.analysis_record import (
    SEVERITY_ORDER,
    AnalysisRecord,
    DetectedPattern,
    Severity,
)


def group_by_severity(record: AnalysisRecord) -> Dict[Severity, List[DetectedPattern]]:
    """
    Patterns bucketed critical -> low; analyzer order inside each bucket.
    Empty buckets are omitted.
    """
    groups: Dict[Severity, List[DetectedPattern]] = {}
    for severity in SEVERITY_ORDER:
        bucket = [p for p in record.patterns if p.severity == severity]
        if bucket:
            groups[severity] = bucket
    return groups


def pattern_distribution(record: AnalysisRecord) -> List[Tuple[str, int]]:
    """
    (pattern name, count), most frequent first; ties by first appearance.
    """
    counts = Counter(p.name for p in record.patterns)
    first_seen = {}
    for index, pattern in enumerate(record.patterns):
        first_seen.setdefault(pattern.name, index)

    return sorted(counts.items(), key=lambda item: (-item[1], first_seen[item[0]]))


def exceeds_threshold(record: AnalysisRecord, threshold: float) -> bool:
    return record.safety_alert or record.score >= threshold
