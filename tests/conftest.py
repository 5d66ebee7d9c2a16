import copy
import dataclasses
import itertools
from datetime import datetime, timezone

import pytest

from conversation_analysis.core.assembler import ResultAssembler
from conversation_analysis.core.errors import StorageError
from conversation_analysis.infrastructure.storage.memory import InMemoryKeyValueStorage


CONVERSATION = (
    'A: "I feel lonely when you work late every night."\n'
    'B: "Lonely? I work for our future! Using that against me shows how little '
    'you value my sacrifices."\n'
    'A: "I am not blaming you, I am telling you how I feel."\n'
    'B: "Your feelings are a weapon. Typical of you."'
)


RAW_RESPONSE = {
    "summary": "B deflects a vulnerable statement and reverses blame.",
    "score": 78,
    "safety_alert": False,
    "subtext_analysis": "Status preservation through guilt induction.",
    "fingerprint": {
        "tags": ["defensive", "accusatory"],
        "dominance_ratio": "80:20",
        "validation_score": 12,
    },
    "patterns": [
        {
            "name": "DARVO",
            "citation": "using that against me",
            "explanation": "The complaint is reframed as an attack.",
            "countermeasure": "Restate the original feeling without defending it.",
            "severity": "high",
        },
        {
            "name": "Gaslighting",
            "citation": "Your feelings are a weapon",
            "explanation": "Emotions are recast as manipulation.",
            "countermeasure": "Name the reframing calmly.",
            "severity": "critical",
        },
        {
            "name": "Projection",
            "citation": "you never listen to me",
            "explanation": "Quote the analyzer invented.",
            "countermeasure": "None.",
            "severity": "low",
        },
    ],
    "plan": {
        "conclusion": "Communication is asymmetric and defensive.",
        "advice": [
            {"title": "Grey rock", "text": "Keep answers short and neutral.", "priority": "high"},
        ],
        "replies": {
            "deescalating": "I hear that you work hard for us.",
            "assertive": "I am describing my feelings, not accusing you.",
            "rationale": "Neither reply offers an emotional hook.",
        },
    },
}


class SequentialIds:
    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


class FailingStorage(InMemoryKeyValueStorage):
    """Storage whose writes (and optionally reads) always fail."""

    def __init__(self, fail_reads: bool = False):
        super().__init__()
        self.fail_reads = fail_reads
        self.write_attempts = 0

    def get(self, key):
        if self.fail_reads:
            raise StorageError("disk unavailable")
        return super().get(key)

    def set(self, key, value):
        self.write_attempts += 1
        raise StorageError("disk full")

    def clear(self, key):
        self.write_attempts += 1
        raise StorageError("disk full")


FIXED_TIME = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def conversation():
    return CONVERSATION


@pytest.fixture
def raw_response():
    return copy.deepcopy(RAW_RESPONSE)


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def assembler(ids):
    return ResultAssembler(id_generator=ids, clock=lambda: FIXED_TIME)


@pytest.fixture
def record(assembler, raw_response, conversation):
    return assembler.assemble(raw_response, conversation)


@pytest.fixture
def make_record(raw_response, conversation):
    """
    Records with distinct ids: make_record("r1"), make_record("r2"), ...
    """
    def _make(record_id: str, text: str = conversation):
        assembler = ResultAssembler(
            id_generator=SequentialIds(prefix=record_id),
            clock=lambda: FIXED_TIME,
        )
        record = assembler.assemble(copy.deepcopy(raw_response), text)
        return dataclasses.replace(record, id=record_id)

    return _make


@pytest.fixture
def memory_storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def failing_storage():
    return FailingStorage


@pytest.fixture
def fixed_time():
    return FIXED_TIME
