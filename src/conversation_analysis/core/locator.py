from typing import Optional

from conversation_analysis.contracts.analysis_record import TextRange


def locate(source_text: str, citation: str) -> Optional[TextRange]:
    """
    Find the leftmost case-insensitive occurrence of `citation` in `source_text`.

    Returns None when the citation is empty, longer than the source
    or simply not there. Analyzers quote loosely, so absence is normal.
    """
    if not citation:
        return None

    needle = citation.lower()
    haystack = source_text.lower()
    if len(needle) > len(haystack):
        return None

    # lower() keeps lengths for almost all text; then offsets line up
    if len(haystack) == len(source_text) and len(needle) == len(citation):
        start = haystack.find(needle)
        if start == -1:
            return None
        return TextRange(start=start, end=start + len(citation))

    return _scan(source_text, needle)


def _scan(source_text: str, needle: str) -> Optional[TextRange]:
    # Windows grow one source character at a time until their lowered
    # form is as long as the needle. A match that starts inside the
    # expansion of one character has no source offset and is skipped.
    for start in range(len(source_text)):
        lowered = ""
        end = start
        while end < len(source_text) and len(lowered) < len(needle):
            lowered += source_text[end].lower()
            end += 1
        if lowered == needle:
            return TextRange(start=start, end=end)
    return None
