# config.py
"""Configuration settings for the coherence engine.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()

_PLACEHOLDER_API_KEYS = {"", "nope", "default_key"}


class CoherenceSettings(BaseSettings):
    """Full configuration for the coherence engine."""

    # API and Model Configuration
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = "nope"
    GENERATION_MODEL: str = "gpt-4o"

    # LLM Call Settings
    TEMPERATURE_GENERATION: float = 0.3
    LLM_TOP_P: float = 0.9
    MAX_GENERATION_TOKENS: int = 4096
    LLM_CALL_TIMEOUT: float = 180.0
    HTTPX_TIMEOUT: float = 600.0

    # Retry / Backoff
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_RETRY_DELAY_SECONDS: float = 3.0
    LLM_RETRY_MAX_DELAY_SECONDS: float = 60.0

    # Concurrency and Rate Limiting
    MAX_CONCURRENT_LLM_CALLS: int = 4
    CHUNK_PAUSE_SECONDS: float = 0.0

    # Plan Builder
    OUTLINE_MIN_UNITS: int = 3
    OUTLINE_MAX_UNITS: int = 7
    OUTLINE_DEFAULT_UNITS: int = 5
    MAX_WORDS_PER_CHUNK: int = 1400
    DOCUMENT_MIN_UNITS: int = 2
    DOCUMENT_MAX_UNITS: int = 60
    DOCUMENT_DEFAULT_TARGET_WORDS: int = 2800

    # Coherence State
    SUMMARY_MAX_CHARS: int = 1800
    DIGEST_SENTENCE_MAX_CHARS: int = 220
    MAX_TRACKED_ENTITIES: int = 40
    ENTITY_SIMILARITY_THRESHOLD: float = 95.0
    MAX_KEY_POINTS: int = 5
    CONTEXT_MAX_INSTRUCTION_CHARS: int = 1500
    CONTEXT_MAX_ENTITY_CHARS: int = 800
    CONTEXT_MAX_CHARS: int = 6000

    # Output Assembly / Failure Policy
    CHUNK_FAILURE_POLICY: str = "abort"
    OUTLINE_SECTION_SEPARATOR: str = "\n\n"
    DOCUMENT_PARAGRAPH_SEPARATOR: str = "\n\n"
    GAP_MARKER_TEMPLATE: str = "[{title}: this section could not be generated.]"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="COHERENCE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = None
    ENABLE_RICH_PROGRESS: bool = True

    @model_validator(mode="after")
    def check_bounds(self) -> CoherenceSettings:
        if not (
            1
            <= self.OUTLINE_MIN_UNITS
            <= self.OUTLINE_DEFAULT_UNITS
            <= self.OUTLINE_MAX_UNITS
        ):
            raise ValueError(
                "OUTLINE_MIN_UNITS <= OUTLINE_DEFAULT_UNITS <= OUTLINE_MAX_UNITS must hold"
            )
        if not 1 <= self.DOCUMENT_MIN_UNITS <= self.DOCUMENT_MAX_UNITS:
            raise ValueError("DOCUMENT_MIN_UNITS must not exceed DOCUMENT_MAX_UNITS")
        if self.MAX_WORDS_PER_CHUNK <= 0:
            raise ValueError("MAX_WORDS_PER_CHUNK must be positive")
        if self.LLM_RETRY_ATTEMPTS < 1:
            raise ValueError("LLM_RETRY_ATTEMPTS must be at least 1")
        if self.MAX_CONCURRENT_LLM_CALLS < 1:
            raise ValueError("MAX_CONCURRENT_LLM_CALLS must be at least 1")
        if self.CHUNK_FAILURE_POLICY not in {"abort", "gap"}:
            raise ValueError("CHUNK_FAILURE_POLICY must be 'abort' or 'gap'")
        parts_budget = (
            self.SUMMARY_MAX_CHARS
            + self.CONTEXT_MAX_ENTITY_CHARS
            + self.CONTEXT_MAX_INSTRUCTION_CHARS
            + self.MAX_KEY_POINTS * self.DIGEST_SENTENCE_MAX_CHARS
        )
        if self.CONTEXT_MAX_CHARS < parts_budget:
            logger.warning(
                "CONTEXT_MAX_CHARS is smaller than its parts; grounding context will be clipped.",
                context_max_chars=self.CONTEXT_MAX_CHARS,
                parts_budget=parts_budget,
            )
        if self.OPENAI_API_KEY in _PLACEHOLDER_API_KEYS:
            logger.warning(
                "OPENAI_API_KEY is not set. Only the offline dry-run backend will work."
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", populate_by_name=True, extra="ignore"
    )


settings = CoherenceSettings()
