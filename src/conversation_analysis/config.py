"""
Runtime settings, read from the environment (and `.env` if present).
"""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from conversation_analysis.core.analyzer.port import DetailLevel


class SettingsError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    models_config_path: str = "models.yaml"
    history_storage_url: str = ".history"
    history_capacity: int = 50
    max_protocol_length: int = 15000
    detail_level: DetailLevel = DetailLevel.STANDARD
    toxicity_threshold: int = 70
    log_level: str = "INFO"


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = int(raw)
    except ValueError:
        raise SettingsError(f"{name} must be an integer, got {raw!r}") from None

    if value < minimum:
        raise SettingsError(f"{name} must be >= {minimum}, got {value}")
    return value


def parse_detail_level(raw: str) -> DetailLevel:
    try:
        return DetailLevel(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(level.value for level in DetailLevel)
        raise SettingsError(f"Unknown detail level {raw!r} (expected one of: {allowed})") from None


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_log_level(raw: str) -> str:
    level = raw.strip().upper()
    if level not in _LOG_LEVELS:
        raise SettingsError(
            f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {raw!r}"
        )
    return level


def load_settings(load_env_file: bool = True) -> Settings:
    if load_env_file:
        load_dotenv()

    defaults = Settings()

    return Settings(
        models_config_path=os.getenv("MODELS_CONFIG_PATH", defaults.models_config_path),
        history_storage_url=os.getenv("HISTORY_STORAGE_URL", defaults.history_storage_url),
        history_capacity=_int_env("HISTORY_CAPACITY", defaults.history_capacity),
        max_protocol_length=_int_env("MAX_PROTOCOL_LENGTH", defaults.max_protocol_length),
        detail_level=parse_detail_level(
            os.getenv("DETAIL_LEVEL", defaults.detail_level.value)
        ),
        toxicity_threshold=_int_env("TOXICITY_THRESHOLD", defaults.toxicity_threshold, minimum=0),
        log_level=parse_log_level(os.getenv("LOG_LEVEL", defaults.log_level)),
    )
