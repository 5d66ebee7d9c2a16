import logging
from dataclasses import dataclass
from typing import List, Union

from conversation_analysis.config import Settings
from conversation_analysis.contracts.analysis_record import AnalysisRecord, Segment
from conversation_analysis.core.analyzer.port import AnalyzerPort, DetailLevel
from conversation_analysis.core.assembler import ResultAssembler
from conversation_analysis.core.errors import InputError
from conversation_analysis.core.history import HistoryStore
from conversation_analysis.core.segments import partition
from conversation_analysis.core.views import exceeds_threshold
from conversation_analysis.infrastructure.analyzer.llm_analyzer import LLMAnalyzer
from conversation_analysis.infrastructure.llm.adapter import LLMAdapter
from conversation_analysis.infrastructure.storage.factory import open_storage


logger = logging.getLogger(__name__)


@dataclass
class Services:
    """
    Infrastructure services container.
    Built once per process, injected into AnalysisService.
    """

    analyzer: AnalyzerPort
    history: HistoryStore


class AnalysisService:
    """
    validate input -> analyzer -> assembler -> history
    """

    def __init__(
        self,
        services: Services,
        assembler: ResultAssembler | None = None,
        max_protocol_length: int = 15000,
        toxicity_threshold: float = 70,
    ):
        self.services = services
        self.assembler = assembler or ResultAssembler()
        self.max_protocol_length = max_protocol_length
        self.toxicity_threshold = toxicity_threshold

    @property
    def history(self) -> HistoryStore:
        return self.services.history

    def validate_input(
        self, conversation_text: str, detail_level: Union[DetailLevel, str]
    ) -> DetailLevel:
        if not isinstance(conversation_text, str) or not conversation_text.strip():
            raise InputError("Conversation text is empty")

        if len(conversation_text) > self.max_protocol_length:
            raise InputError(
                f"Conversation text is {len(conversation_text)} characters, "
                f"limit is {self.max_protocol_length}"
            )

        try:
            return DetailLevel(detail_level)
        except ValueError:
            raise InputError(f"Unknown detail level: {detail_level!r}") from None

    def analyze(
        self,
        conversation_text: str,
        context_text: str = "",
        detail_level: Union[DetailLevel, str] = DetailLevel.STANDARD,
    ) -> AnalysisRecord:
        level = self.validate_input(conversation_text, detail_level)

        raw = self.services.analyzer.analyze(conversation_text, context_text, level)
        record = self.assembler.assemble(raw, conversation_text)

        self.services.history.add(record)

        logger.info(
            "Analysis %s stored: score=%s, patterns=%d",
            record.id,
            record.score,
            len(record.patterns),
        )
        if exceeds_threshold(record, self.toxicity_threshold):
            logger.warning(
                "Analysis %s is above the alert threshold (score=%s, safety_alert=%s)",
                record.id,
                record.score,
                record.safety_alert,
            )

        return record

    @staticmethod
    def segments(record: AnalysisRecord) -> List[Segment]:
        return partition(record.source_text, record.patterns)


def build_service(settings: Settings) -> AnalysisService:
    services = Services(
        analyzer=LLMAnalyzer(LLMAdapter.from_file(settings.models_config_path)),
        history=build_history(settings),
    )

    return AnalysisService(
        services,
        max_protocol_length=settings.max_protocol_length,
        toxicity_threshold=settings.toxicity_threshold,
    )


def build_history(settings: Settings) -> HistoryStore:
    return HistoryStore(
        open_storage(settings.history_storage_url),
        capacity=settings.history_capacity,
    )
