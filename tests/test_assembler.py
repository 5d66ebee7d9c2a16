import dataclasses

import pytest

from conversation_analysis.contracts.analysis_record import Severity, TextRange
from conversation_analysis.core.assembler import ResultAssembler, parse_severity
from conversation_analysis.core.errors import SchemaValidationError


def test_assembles_complete_record(record, conversation, fixed_time):
    assert record.source_text == conversation
    assert record.created_at == fixed_time
    assert record.summary.startswith("B deflects")
    assert record.score == 78
    assert record.safety_alert is False
    assert record.subtext_analysis == "Status preservation through guilt induction."

    assert record.fingerprint.tags == ("defensive", "accusatory")
    assert record.fingerprint.dominance_ratio == "80:20"
    assert record.fingerprint.validation_score == 12

    assert record.plan.conclusion == "Communication is asymmetric and defensive."
    assert record.plan.advice[0].title == "Grey rock"
    assert record.plan.replies.assertive.startswith("I am describing")


def test_ids_come_from_injected_generator(record):
    # patterns first, in analyzer order, then the record
    assert [p.id for p in record.patterns] == ["id-1", "id-2", "id-3"]
    assert record.id == "id-4"


def test_pattern_order_and_fields_are_preserved(record):
    assert [p.name for p in record.patterns] == ["DARVO", "Gaslighting", "Projection"]
    assert [p.severity for p in record.patterns] == [
        Severity.HIGH,
        Severity.CRITICAL,
        Severity.LOW,
    ]


def test_citations_are_located_in_source(record, conversation):
    darvo, gaslighting, invented = record.patterns

    for located in (darvo, gaslighting):
        start, end = located.range.start, located.range.end
        assert conversation[start:end].lower() == located.citation.lower()

    assert conversation[darvo.range.start:darvo.range.end] == "Using that against me"
    assert invented.range is None


def test_source_text_is_stored_verbatim(assembler, raw_response):
    text = "  padded text with trailing spaces \n\n"
    record = assembler.assemble(raw_response, text)
    assert record.source_text == text


def test_record_is_immutable(record):
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.score = 0
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.patterns[0].range = TextRange(0, 1)


def test_optional_fields_default(assembler, raw_response, conversation):
    del raw_response["safety_alert"]
    del raw_response["subtext_analysis"]

    record = assembler.assemble(raw_response, conversation)

    assert record.safety_alert is False
    assert record.subtext_analysis == ""


def test_empty_pattern_list_is_valid(assembler, raw_response, conversation):
    raw_response["patterns"] = []
    record = assembler.assemble(raw_response, conversation)
    assert record.patterns == ()


def test_duplicate_citations_resolve_to_same_range(assembler, raw_response, conversation):
    raw_response["patterns"].append(dict(raw_response["patterns"][0], name="Blame shifting"))

    record = assembler.assemble(raw_response, conversation)

    assert record.patterns[0].range == record.patterns[3].range
    assert record.patterns[0].id != record.patterns[3].id


@pytest.mark.parametrize(
    "mutate, field",
    [
        (lambda r: r.pop("summary"), "summary"),
        (lambda r: r.pop("score"), "score"),
        (lambda r: r.pop("fingerprint"), "fingerprint"),
        (lambda r: r.pop("patterns"), "patterns"),
        (lambda r: r.pop("plan"), "plan"),
        (lambda r: r.update(score="high"), "score"),
        (lambda r: r.update(score=True), "score"),
        (lambda r: r.update(summary=None), "summary"),
        (lambda r: r.update(safety_alert="yes"), "safety_alert"),
        (lambda r: r.update(patterns={"name": "x"}), "patterns"),
        (lambda r: r["fingerprint"].pop("tags"), "fingerprint.tags"),
        (lambda r: r["fingerprint"].update(tags=["ok", 3]), "fingerprint.tags[1]"),
        (lambda r: r["fingerprint"].update(validation_score="12"), "fingerprint.validation_score"),
        (lambda r: r["patterns"][1].pop("citation"), "patterns[1].citation"),
        (lambda r: r["patterns"][2].update(severity="extreme"), "patterns[2].severity"),
        (lambda r: r["patterns"][0].pop("severity"), "patterns[0].severity"),
        (lambda r: r["patterns"].append("not an object"), "patterns[3]"),
        (lambda r: r["plan"].pop("conclusion"), "plan.conclusion"),
        (lambda r: r["plan"]["advice"][0].pop("priority"), "plan.advice[0].priority"),
        (lambda r: r["plan"]["replies"].pop("rationale"), "plan.replies.rationale"),
    ],
)
def test_schema_errors_name_the_field(assembler, raw_response, conversation, mutate, field):
    mutate(raw_response)

    with pytest.raises(SchemaValidationError) as excinfo:
        assembler.assemble(raw_response, conversation)

    assert excinfo.value.field == field
    assert field in str(excinfo.value)


def test_non_object_response_is_rejected(assembler, conversation):
    with pytest.raises(SchemaValidationError):
        assembler.assemble(["not", "a", "dict"], conversation)


def test_invalid_response_consumes_no_ids(raw_response, conversation):
    calls = []

    def ids():
        calls.append(1)
        return str(len(calls))

    raw_response["patterns"][2]["severity"] = "???"

    with pytest.raises(SchemaValidationError):
        ResultAssembler(id_generator=ids).assemble(raw_response, conversation)

    assert calls == []


@pytest.mark.parametrize(
    "label, expected",
    [
        ("low", Severity.LOW),
        ("MEDIUM", Severity.MEDIUM),
        (" High ", Severity.HIGH),
        ("critical", Severity.CRITICAL),
        ("niedrig", Severity.LOW),
        ("mittel", Severity.MEDIUM),
        ("hoch", Severity.HIGH),
        ("kritisch", Severity.CRITICAL),
    ],
)
def test_parse_severity(label, expected):
    assert parse_severity(label, "severity") == expected


def test_default_collaborators_produce_unique_ids(raw_response, conversation):
    assembler = ResultAssembler()

    first = assembler.assemble(raw_response, conversation)
    second = assembler.assemble(raw_response, conversation)

    assert first.id != second.id
    assert first.created_at.tzinfo is not None
