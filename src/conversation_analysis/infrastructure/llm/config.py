import os
from typing import Any, Dict, Optional

import yaml

from conversation_analysis.core.analyzer.port import DetailLevel


class ModelConfigError(Exception):
    pass


SUPPORTED_BACKENDS = ("ollama", "llama_cpp")


def load_models_config(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ModelConfigError(f"Models config not found: {path}") from None

    if not isinstance(config, dict):
        raise ModelConfigError(f"Models config must be a mapping: {path}")

    if not config.get("profiles"):
        raise ModelConfigError(f"No model profiles defined in {path}")

    return config


def get_model_profile(models_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    profiles = models_config.get("profiles", {})

    if name not in profiles:
        available = ", ".join(profiles)
        raise ModelConfigError(
            f"Model profile '{name}' not found in models.yaml (available: {available})"
        )

    profile = dict(profiles[name])
    profile["profile_name"] = name

    backend = profile.get("backend")
    if backend not in SUPPORTED_BACKENDS:
        raise ModelConfigError(f"Profile '{name}': unsupported backend '{backend}'")
    if backend == "ollama" and not profile.get("name"):
        raise ModelConfigError(f"Profile '{name}': backend 'ollama' requires 'name'")
    if backend == "llama_cpp" and not profile.get("path"):
        raise ModelConfigError(f"Profile '{name}': backend 'llama_cpp' requires 'path'")

    return profile


def get_active_profile_name(models_config: Dict[str, Any]) -> str:
    active_profile = os.getenv("ACTIVE_MODEL_PROFILE")

    if not active_profile:
        active_profile = models_config.get("default_model")

    if not active_profile:
        raise ModelConfigError(
            "No active model: set ACTIVE_MODEL_PROFILE or default_model in models.yaml"
        )

    return active_profile


def get_active_model_profile(models_config: Dict[str, Any]) -> Dict[str, Any]:
    return get_model_profile(models_config, get_active_profile_name(models_config))


def get_detail_level_config(
    models_config: Dict[str, Any], level: DetailLevel
) -> Dict[str, Any]:
    """
    Per-detail-level overrides:

        detail_levels:
          compact:
            profile: fast        # optional, another profile key
            params: {num_predict: 2048}
    """
    levels = models_config.get("detail_levels") or {}
    entry: Optional[Dict[str, Any]] = levels.get(level.value)

    if entry is None:
        return {"profile": None, "params": {}}

    return {
        "profile": entry.get("profile"),
        "params": dict(entry.get("params") or {}),
    }
