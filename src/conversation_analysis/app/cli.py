#!/usr/bin/env python3
"""CLI for conversation analysis and the local analysis history."""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from conversation_analysis.config import SettingsError, load_settings
from conversation_analysis.contracts.analysis_record import (
    AnalysisRecord,
    EvidenceSegment,
)
from conversation_analysis.contracts.serialization import record_to_dict
from conversation_analysis.core.analyzer.port import DetailLevel
from conversation_analysis.core.errors import AnalysisPipelineError
from conversation_analysis.core.segments import partition
from conversation_analysis.core.views import group_by_severity, pattern_distribution
from conversation_analysis.infrastructure.llm.config import ModelConfigError
from conversation_analysis.prompts.registry import PromptNotFound
from conversation_analysis.service import build_history, build_service


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        "conversation-analysis",
        description="Detect manipulative communication patterns in a conversation",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a conversation and store the result")
    analyze.add_argument("source", help="Text file with the conversation, or '-' for stdin")
    analyze.add_argument("--context", default="", help="Background for the analyst")
    analyze.add_argument(
        "--detail-level",
        choices=[level.value for level in DetailLevel],
        default=None,
        help="Overrides DETAIL_LEVEL",
    )
    analyze.add_argument("--json", action="store_true", help="Print the record as JSON")

    history = sub.add_parser("history", help="Inspect the analysis history")
    history_sub = history.add_subparsers(dest="history_command", required=True)

    history_sub.add_parser("list", help="List stored analyses, newest first")

    show = history_sub.add_parser("show", help="Show one analysis with highlighted evidence")
    show.add_argument("id")
    show.add_argument("--json", action="store_true")

    remove = history_sub.add_parser("remove", help="Remove one analysis")
    remove.add_argument("id")

    history_sub.add_parser("clear", help="Remove all analyses")

    return parser


def read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def render_annotated_text(record: AnalysisRecord) -> str:
    """
    Evidence is shown as [[quoted text]]^n, n = pattern number in the report.
    """
    numbers = {p.id: index for index, p in enumerate(record.patterns, start=1)}

    parts = []
    for segment in partition(record.source_text, record.patterns):
        if isinstance(segment, EvidenceSegment):
            parts.append(f"[[{segment.text}]]^{numbers[segment.pattern_id]}")
        else:
            parts.append(segment.text)
    return "".join(parts)


def print_record(record: AnalysisRecord) -> None:
    numbers = {p.id: index for index, p in enumerate(record.patterns, start=1)}

    print("\n=== ANALYSIS ===")
    print(f"id: {record.id}")
    print(f"created: {record.created_at.isoformat()}")
    print(f"score: {record.score}")
    if record.safety_alert:
        print("SAFETY ALERT: someone may be at risk")
    print(f"\n{record.summary}")

    if record.subtext_analysis:
        print(f"\n--- Subtext ---\n{record.subtext_analysis}")

    fp = record.fingerprint
    print("\n--- Fingerprint ---")
    print(f"tags: {', '.join(fp.tags) or '-'}")
    print(f"dominance ratio: {fp.dominance_ratio}")
    print(f"validation score: {fp.validation_score}")

    print("\n--- Conversation ---")
    print(render_annotated_text(record))

    print("\n--- Patterns ---")
    for severity, patterns in group_by_severity(record).items():
        print(f"[{severity.value.upper()}]")
        for pattern in patterns:
            where = "" if pattern.range else " (quote not found in text)"
            print(f"  {numbers[pattern.id]}. {pattern.name}{where}")
            print(f"     \"{pattern.citation}\"")
            print(f"     {pattern.explanation}")
            print(f"     -> {pattern.countermeasure}")

    distribution = pattern_distribution(record)
    if distribution:
        print("\n--- Distribution ---")
        for name, count in distribution:
            print(f"  {name}: {count}")

    plan = record.plan
    print("\n--- Action plan ---")
    print(plan.conclusion)
    for advice in plan.advice:
        print(f"  * [{advice.priority}] {advice.title}: {advice.text}")
    print(f"\nDe-escalating reply: {plan.replies.deescalating}")
    print(f"Assertive reply: {plan.replies.assertive}")
    print(f"Why: {plan.replies.rationale}")


def cmd_analyze(args, settings) -> int:
    conversation = read_source(args.source)
    level = DetailLevel(args.detail_level) if args.detail_level else settings.detail_level

    service = build_service(settings)
    record = service.analyze(conversation, args.context, level)

    if args.json:
        print(json.dumps(record_to_dict(record), ensure_ascii=False, indent=2))
    else:
        print_record(record)
    return 0


def cmd_history(args, settings) -> int:
    history = build_history(settings)

    if args.history_command == "list":
        records = history.list()
        if not records:
            print("History is empty")
        for record in records:
            summary = record.summary.replace("\n", " ")
            if len(summary) > 60:
                summary = summary[:57] + "..."
            print(
                f"{record.id}  {record.created_at:%Y-%m-%d %H:%M}  "
                f"score={record.score:<5} patterns={len(record.patterns):<3} {summary}"
            )
        return 0

    if args.history_command == "show":
        record = history.get(args.id)
        if record is None:
            print(f"No analysis with id {args.id}", file=sys.stderr)
            return 1
        if args.json:
            print(json.dumps(record_to_dict(record), ensure_ascii=False, indent=2))
        else:
            print_record(record)
        return 0

    if args.history_command == "remove":
        before = len(history)
        history.remove(args.id)
        if len(history) == before:
            print(f"No analysis with id {args.id}")
        else:
            print(f"Removed {args.id}")
        return 0

    if args.history_command == "clear":
        history.clear()
        print("History cleared")
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except SettingsError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "analyze":
            return cmd_analyze(args, settings)
        return cmd_history(args, settings)
    except (AnalysisPipelineError, ModelConfigError, PromptNotFound, FileNotFoundError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
