"""Shared configuration management for the invoice parser.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug

    Provider API keys are also read from their conventional unprefixed names
    (GEMINI_API_KEY, OPENAI_API_KEY).
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        protected_namespaces=(),
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="magic-invoice-parser",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Model provider configuration
    model_provider: Literal["gemini", "openai", "ollama"] = Field(
        default="gemini",
        description="Generative model provider: gemini, openai (cloud APIs), ollama (self-hosted)",
    )
    model_temperature: float = Field(
        default=0.2,
        ge=0,
        le=2,
        description="Sampling temperature for invoice generation (low = near-deterministic)",
    )
    model_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for a single model call; exceeding it is a transport failure",
    )
    model_max_attempts: int = Field(
        default=1,
        ge=1,
        description="Model call attempts (1 = no retries)",
    )

    # Gemini configuration (for model_provider="gemini")
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("APP_GEMINI_API_KEY", "GEMINI_API_KEY", "gemini_api_key"),
        description="Google Gemini API key",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for invoice generation",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Gemini REST API base URL",
    )

    # OpenAI configuration (for model_provider="openai")
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("APP_OPENAI_API_KEY", "OPENAI_API_KEY", "openai_api_key"),
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for invoice generation",
    )

    # Ollama configuration (for model_provider="ollama")
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="qwen2.5:7b",
        description="Ollama model to use for invoice generation",
    )

    # Parsing
    max_prompt_length: int = Field(
        default=2000,
        gt=0,
        description="Longest accepted invoice description, in characters",
    )
    invoice_number_prefix: str = Field(
        default="MI",
        description="Prefix for generated invoice numbers (<PREFIX>-<YYYYMMDD>-<NNN>)",
    )

    # Rate limiting
    rate_limit_max_requests: int = Field(
        default=20,
        gt=0,
        description="Parse requests allowed per client within one window",
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        gt=0,
        description="Rate-limit window length in seconds",
    )
    upstash_redis_rest_url: str = Field(
        default="",
        validation_alias=AliasChoices(
            "APP_UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_REST_URL", "upstash_redis_rest_url"
        ),
        description="Upstash Redis REST URL (durable rate-limit store; in-memory if unset)",
    )
    upstash_redis_rest_token: str = Field(
        default="",
        validation_alias=AliasChoices(
            "APP_UPSTASH_REDIS_REST_TOKEN", "UPSTASH_REDIS_REST_TOKEN", "upstash_redis_rest_token"
        ),
        description="Upstash Redis REST token",
    )

    # Authentication
    api_tokens: list[str] = Field(
        default_factory=list,
        description="Accepted bearer tokens (JSON list); empty disables authentication",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
