"""
Configuration settings for unitforge.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # LLM Provider
    # ========================================
    llm_provider: Literal["gemini", "proxy"] = Field(
        default="gemini",
        description="Which transport to use: direct Gemini or an OpenAI-compatible proxy",
    )
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key",
    )
    ai_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used for generation and validation",
    )
    llm_proxy_url: str = Field(
        default="",
        description="Base URL of the chat-completions proxy (e.g. https://host/v1)",
    )
    llm_proxy_api_key: str = Field(
        default="",
        description="Bearer token for the proxy, if it requires one",
    )
    llm_proxy_model: str = Field(
        default="gpt-4o-mini",
        description="Model name sent to the proxy",
    )

    # ========================================
    # Transport Policy
    # ========================================
    llm_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        description="Timeout for outline, step, validation and fix calls",
    )
    llm_long_timeout_ms: int = Field(
        default=120000,
        ge=1000,
        description="Timeout ceiling for full-document calls (legacy generator)",
    )
    llm_transport_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Transport attempts per call, with exponential backoff",
    )
    llm_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for generation calls",
    )
    llm_max_output_tokens: int = Field(
        default=8192,
        description="Max output tokens per generation call",
    )

    # ========================================
    # Generation Defaults
    # ========================================
    default_audience_band: Literal["elementary", "middle", "high"] = Field(
        default="middle",
        description="Grade band used when none is given",
    )
    default_length_tier: Literal["short", "medium", "long"] = Field(
        default="medium",
        description="Unit length: short=3, medium=5, long=7 steps",
    )
    default_mode: Literal["learning", "exam", "game"] = Field(
        default="learning",
        description="Generation mode",
    )
    output_language: str = Field(
        default="English",
        description="Language the generated content is written in",
    )
    outline_source_limit: int = Field(
        default=15000,
        description="Characters of source text sent to the outline prompt",
    )
    step_source_limit: int = Field(
        default=3000,
        description="Characters of source text sent to each step prompt",
    )
    include_tutor_block: bool = Field(
        default=False,
        description="Append an interactive tutor chat block to generated documents",
    )
    tutor_persona: Literal["teacher", "socratic", "concise", "coach"] = Field(
        default="teacher",
        description="Persona for the tutor chat block",
    )

    # ========================================
    # Normalization & Validation
    # ========================================
    normalizer_strict_answers: bool = Field(
        default=True,
        description="Reject multiple-choice items with no resolvable correct answer",
    )
    workflow_max_retries: int = Field(
        default=2,
        ge=0,
        description="Auto-fix attempts before the workflow gives up",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated by loguru)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
