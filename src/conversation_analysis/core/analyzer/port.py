from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict


class DetailLevel(str, Enum):
    COMPACT = "compact"
    STANDARD = "standard"
    DEEP = "deep"


class AnalyzerPort(ABC):
    @abstractmethod
    def analyze(
        self,
        conversation_text: str,
        context_text: str,
        detail_level: DetailLevel,
    ) -> Dict[str, Any]:
        """
        Send a conversation to the external analyzer.

        Returns the raw, still untrusted response object.
        Raises AnalyzerUnavailableError when the analyzer cannot be reached
        and SchemaValidationError when its reply is not a JSON object.

        Core does not know which model answers, nor how.
        """
        raise NotImplementedError
