from typing import Literal, Optional, TypedDict


BackendName = Literal["ollama", "llama_cpp"]


class LLMMetadata(TypedDict):
    """
    What the analyzer needs to know about the model behind a profile.
    """

    backend: BackendName
    model: str                  # ollama model name or gguf model id
    profile: str                # key under `profiles:` in models.yaml

    context_size: Optional[int]

    supports_system_prompt: bool    # False -> instruction is prepended to the prompt
    supports_json_mode: bool        # backend can constrain output to JSON
