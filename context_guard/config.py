# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Application configuration using pydantic-settings.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Attributes:
        APP_NAME (str): Display name of the application.
        APP_VERSION (str): Version reported by the health endpoint.
        DEBUG (bool): Whether to enable debug mode.
        LOG_LEVEL (str): Root log level applied at startup.
        CORS_ORIGINS (str): Comma-separated list of allowed CORS origins.
        OPENAI_API_KEY (str): OpenAI API key for the summary model.
        GOOGLE_API_KEY (str): Google AI Studio key for Gemini summary models.
        SUMMARY_MODEL (str): Model identifier used for summarization.
        SUMMARY_TEMPERATURE (float): Sampling temperature for summaries.
        SUMMARY_MAX_TOKENS (int): Maximum tokens per generated summary.
        CONTEXT_MAX_TOKENS (int): Default token budget for trimming.
        CONTEXT_FALLBACK_MESSAGE_COUNT (int): Default message budget when no
            tokenizer is available.
        SUMMARIZE_TRIGGER_TOKENS (int): Estimated size that triggers
            summarization.
        SUMMARIZE_KEEP_MESSAGES (int): Recent messages kept verbatim when
            summarizing.
        COMPRESSION_KEEP_COUNT (int): Recent results per tool kept verbatim.
        COMPRESSION_MAX_LENGTH (int): Size above which older results are
            compressed.
        TOOL_KEEP_COUNT (int): Recent tool results kept when clearing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Context Guard"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    OPENAI_API_KEY: str = ""
    GOOGLE_API_KEY: str = ""

    SUMMARY_MODEL: str = "gpt-4o-mini"
    SUMMARY_TEMPERATURE: float = 0.3
    SUMMARY_MAX_TOKENS: int = 2_000

    # Pipeline defaults
    CONTEXT_MAX_TOKENS: int = 100_000
    CONTEXT_FALLBACK_MESSAGE_COUNT: int = 40
    SUMMARIZE_TRIGGER_TOKENS: int = 100_000
    SUMMARIZE_KEEP_MESSAGES: int = 20
    COMPRESSION_KEEP_COUNT: int = 3
    COMPRESSION_MAX_LENGTH: int = 2_000
    TOOL_KEEP_COUNT: int = 5

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins as list.

        Returns:
            List[str]: A list of origin URL strings split from the
                comma-separated CORS_ORIGINS setting.
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def summary_model_configured(self) -> bool:
        """Whether credentials exist for the configured summary model."""
        if self.SUMMARY_MODEL.startswith("gemini"):
            return bool(self.GOOGLE_API_KEY)
        return bool(self.OPENAI_API_KEY)


settings = Settings()
