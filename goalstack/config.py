from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


class Settings(BaseModel):
    llm_provider: str = Field(default_factory=lambda: _env("LLM_PROVIDER", "openai"))
    llm_model: str = Field(default_factory=lambda: _env("LLM_MODEL"))
    llm_temperature: float = Field(default_factory=lambda: _env_float("LLM_TEMPERATURE", 0.3))
    llm_max_tokens: int = Field(default_factory=lambda: int(_env_float("LLM_MAX_TOKENS", 4096)))

    host: str = Field(default_factory=lambda: _env("GOALSTACK_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(_env_float("GOALSTACK_PORT", 3000)))
    log_level: str = Field(default_factory=lambda: _env("GOALSTACK_LOG_LEVEL", "INFO").upper())

    default_man_days: float = Field(default_factory=lambda: _env_float("GOALSTACK_MAN_DAYS", 50))
    default_timeline_weeks: float = Field(default_factory=lambda: _env_float("GOALSTACK_TIMELINE_WEEKS", 12))
    max_timeline_weeks: int = 26


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
