import json
import logging
import re
from typing import Any, Dict

from conversation_analysis.core.analyzer.port import AnalyzerPort, DetailLevel
from conversation_analysis.core.errors import AnalyzerUnavailableError, SchemaValidationError
from conversation_analysis.infrastructure.llm.adapter import LLMAdapter
from conversation_analysis.infrastructure.llm.config import (
    ModelConfigError,
    get_detail_level_config,
)
from conversation_analysis.prompts.registry import PromptRegistry


logger = logging.getLogger(__name__)

_OPENING_FENCE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """
    Models like to wrap JSON in ```json ... ``` even when asked not to.
    """
    text = text.strip()
    text = _OPENING_FENCE.sub("", text)
    text = _CLOSING_FENCE.sub("", text)
    return text.strip()


class LLMAnalyzer(AnalyzerPort):
    """
    Analyzer backed by a local LLM (Ollama or llama.cpp).

    The detail level selects generation overrides (and optionally
    another model profile) from the `detail_levels` section of models.yaml.
    """

    PROMPT_PATH = "analysis/v1.yaml"

    def __init__(self, llm: LLMAdapter, prompt_registry: PromptRegistry | None = None):
        self.llm = llm
        self.prompt_registry = prompt_registry or PromptRegistry()

    def analyze(
        self,
        conversation_text: str,
        context_text: str,
        detail_level: DetailLevel,
    ) -> Dict[str, Any]:
        # 1. Render prompt
        prompt = self.prompt_registry.render(
            self.PROMPT_PATH,
            conversation=conversation_text,
            context=context_text or "(none)",
        )
        system = self.prompt_registry.system_instruction(self.PROMPT_PATH)

        # 2. Detail level -> profile / params
        level = get_detail_level_config(self.llm.models_config, detail_level)

        # 3. LLM inference
        logger.info(
            "Analyzing %d chars (detail=%s, profile=%s)",
            len(conversation_text),
            detail_level.value,
            level["profile"] or self.llm.active_profile,
        )
        try:
            response = self.llm.generate(
                prompt,
                system=system,
                profile=level["profile"],
                params=level["params"],
            )
        except ModelConfigError:
            raise
        except Exception as e:
            raise AnalyzerUnavailableError(f"LLM inference failed: {e}") from e

        if not response:
            raise AnalyzerUnavailableError("LLM returned an empty response")

        # 4. Decode
        try:
            data = json.loads(strip_code_fences(response))
        except json.JSONDecodeError as e:
            raise SchemaValidationError("<root>", f"response is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SchemaValidationError("<root>", "response must be a JSON object")

        return data
