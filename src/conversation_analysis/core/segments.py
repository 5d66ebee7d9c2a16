from typing import Iterable, List

from conversation_analysis.contracts.analysis_record import (
    DetectedPattern,
    EvidenceSegment,
    PlainSegment,
    Segment,
)


def partition(source_text: str, patterns: Iterable[DetectedPattern]) -> List[Segment]:
    """
    Split `source_text` into contiguous plain and evidence segments.

    Patterns are visited by start offset (ties keep analyzer order).
    A pattern whose range starts inside already emitted evidence is
    dropped from the inline view: first wins, nothing is truncated.
    Joining the segment texts always gives back `source_text`.
    """
    text_length = len(source_text)

    located = [
        p for p in patterns
        if p.range is not None
        and 0 <= p.range.start < p.range.end <= text_length
    ]
    # sorted() is stable
    located = sorted(located, key=lambda p: p.range.start)

    segments: List[Segment] = []
    cursor = 0

    for pattern in located:
        start, end = pattern.range.start, pattern.range.end

        if start < cursor:
            continue

        if start > cursor:
            segments.append(PlainSegment(text=source_text[cursor:start]))

        segments.append(
            EvidenceSegment(text=source_text[start:end], pattern_id=pattern.id)
        )
        cursor = end

    if cursor < text_length:
        segments.append(PlainSegment(text=source_text[cursor:]))

    return segments
