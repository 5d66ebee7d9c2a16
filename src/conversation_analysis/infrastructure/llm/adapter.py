import logging
from typing import Any, Callable, Dict, Optional

from conversation_analysis.infrastructure.llm.backends.base import LLMBackend
from conversation_analysis.infrastructure.llm.config import (
    get_active_profile_name,
    get_model_profile,
    load_models_config,
)
from conversation_analysis.infrastructure.llm.types import LLMMetadata


logger = logging.getLogger(__name__)


BackendFactory = Callable[[Dict[str, Any]], LLMBackend]


def create_backend(profile: Dict[str, Any]) -> LLMBackend:
    backend_type = profile.get("backend")

    # imported here: llama_cpp is an optional install
    if backend_type == "ollama":
        from conversation_analysis.infrastructure.llm.backends.ollama import OllamaBackend

        return OllamaBackend(profile)
    if backend_type == "llama_cpp":
        from conversation_analysis.infrastructure.llm.backends.llama_cpp import LlamaCppBackend

        return LlamaCppBackend(profile)

    raise ValueError(f"Unsupported backend: {backend_type}")


class LLMAdapter:
    """
    Infrastructure-level LLM adapter.

    Responsibilities:
    - load model config
    - select backend per profile
    - lazy backend initialization (one backend per profile, reused)
    - expose unified metadata

    IMPORTANT: no model is loaded on init.
    """

    def __init__(
        self,
        models_config: Dict[str, Any],
        backend_factory: BackendFactory = create_backend,
    ):
        self.models_config = models_config
        self.active_profile = get_active_profile_name(models_config)
        self.backend_factory = backend_factory

        self._backends: Dict[str, LLMBackend] = {}  # lazy-loaded

        logger.info("LLMAdapter created for profile '%s' (lazy init)", self.active_profile)

    @classmethod
    def from_file(cls, models_config_path: str) -> "LLMAdapter":
        return cls(load_models_config(models_config_path))

    def _backend(self, profile_name: Optional[str]) -> LLMBackend:
        name = profile_name or self.active_profile

        if name not in self._backends:
            profile = get_model_profile(self.models_config, name)
            logger.info("Initializing %s backend for profile '%s'", profile["backend"], name)
            self._backends[name] = self.backend_factory(profile)

        return self._backends[name]

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        profile: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Run inference via the backend of `profile` (active profile by default).
        `params` override the profile's generation params.
        """
        backend = self._backend(profile)

        profile_params = get_model_profile(
            self.models_config, profile or self.active_profile
        ).get("params", {})

        return backend.generate(prompt, {**profile_params, **(params or {})}, system=system)

    def meta(self, profile: Optional[str] = None) -> LLMMetadata:
        return self._backend(profile).meta
