"""AI insight service config schema.

The API key itself never lives in config files: `api_key_env` names the
environment variable read at request time.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class AISamplingConfig(BaseModel):
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 1024

    model_config = ConfigDict(extra="forbid")

    @field_validator("temperature")
    @classmethod
    def _temp_range(cls, v: float) -> float:  # noqa: D401
        if not (0 <= v <= 2):
            raise ValueError("temperature out of range 0..2")
        return v

    @field_validator("top_k")
    @classmethod
    def _top_k_range(cls, v: int) -> int:  # noqa: D401
        if v <= 0:
            raise ValueError("top_k must be >0")
        return v


class AIConfig(BaseModel):
    model: str = "gemini-pro"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    api_key_env: str = "GLUCO_AI_API_KEY"
    queue_delay_ms: int = 500
    timeout_s: float = 30.0
    sampling: AISamplingConfig = AISamplingConfig()

    model_config = ConfigDict(extra="forbid")
