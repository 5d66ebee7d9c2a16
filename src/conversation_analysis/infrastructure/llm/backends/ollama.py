from typing import Dict, Any, Optional

import ollama

from conversation_analysis.infrastructure.llm.backends.base import LLMBackend
from conversation_analysis.infrastructure.llm.types import LLMMetadata


class OllamaBackend(LLMBackend):
    """
    Backend for Ollama.

    Characteristics:
    - chat-based, system prompt sent as its own message
    - JSON mode via `format: json` in the profile
    - external daemon (stateless from our side)
    """

    def __init__(self, profile: Dict[str, Any], client: Optional[Any] = None):
        self.profile = profile

        # --- metadata fields ---
        self.profile_name: str = profile.get("profile_name", "unknown")

        self.model_name: str = profile.get("name")
        if not self.model_name:
            raise ValueError("Ollama backend requires 'name' in model profile")

        params = profile.get("params", {})
        self.context_size = params.get("num_ctx")  # may be None

        self.response_format: Optional[str] = profile.get("format")

        # --- client ---
        # host=None lets the library fall back to OLLAMA_HOST
        self.client = client or ollama.Client(
            host=profile.get("host"),
            timeout=profile.get("timeout"),
        )

        # --- default generation params ---
        self.default_generation_params: Dict[str, Any] = {
            "temperature": params.get("temperature", 0.1),
            "top_p": params.get("top_p", 0.9),
            "repeat_penalty": params.get("repeat_penalty", 1.1),
            "num_predict": params.get("num_predict", 4096),
        }
        if self.context_size:
            self.default_generation_params["num_ctx"] = self.context_size

    def generate(
        self,
        prompt: str,
        params: Dict[str, Any] | None = None,
        system: Optional[str] = None,
    ) -> str:
        """
        Run synchronous chat-based inference.
        """
        generation_params = {
            **self.default_generation_params,
            **(params or {}),
        }

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "options": generation_params,
            "stream": False,
        }
        if self.response_format:
            request["format"] = self.response_format

        response = self.client.chat(**request)

        return response["message"]["content"].strip()

    @property
    def meta(self) -> LLMMetadata:
        return {
            "backend": "ollama",
            "model": self.model_name,
            "profile": self.profile_name,
            "context_size": self.context_size,
            "supports_system_prompt": True,
            "supports_json_mode": True,
        }
