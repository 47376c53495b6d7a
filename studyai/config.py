"""Configuration management for the study assistant AI service."""

from typing import List, Optional, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_PROVIDERS = ("deepseek", "openai", "anthropic", "google")
BATCH_STRATEGIES = ("parallel", "sequential")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    cors_allow_origins: str = "*"  # Comma-separated list
    host: str = "0.0.0.0"
    port: int = 8000

    # LLM API Keys
    openai_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    # Models
    openai_model: str = "gpt-4o"
    deepseek_model: str = "deepseek-chat"
    deepseek_reasoning_model: Optional[str] = "deepseek-reasoner"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    google_model: str = "gemini-1.5-flash"
    deepseek_base_url: str = "https://api.deepseek.com"

    # Primary first, then fallbacks. Providers without a key are skipped.
    provider_order: str = "deepseek,openai,anthropic,google"

    # Timeouts (seconds)
    question_timeout_seconds: float = 60.0
    explanation_timeout_seconds: float = 120.0
    default_timeout_seconds: float = 90.0

    # Response token budgets
    max_tokens: int = 4096
    follow_up_max_tokens: int = 2048

    # Question Generation Settings
    question_batch_strategy: str = "parallel"
    question_overfetch_ratio: float = 1.5
    question_sub_batch_size: int = 8
    question_max_count: int = 25
    question_default_count: int = 10
    question_max_sequential_attempts: int = 3

    # Labels used for true/false options, first value means "true"
    true_false_labels: Tuple[str, str] = ("صح", "خطأ")

    @field_validator(
        "question_sub_batch_size",
        "question_max_count",
        "question_default_count",
        "question_max_sequential_attempts",
        "max_tokens",
        "follow_up_max_tokens",
    )
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator(
        "question_timeout_seconds",
        "explanation_timeout_seconds",
        "default_timeout_seconds",
    )
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @field_validator("question_overfetch_ratio")
    @classmethod
    def _overfetch_at_least_one(cls, value: float) -> float:
        if value < 1.0:
            raise ValueError("question_overfetch_ratio must be >= 1.0")
        return value

    @field_validator("question_batch_strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in BATCH_STRATEGIES:
            raise ValueError(
                f"Unknown batch strategy '{value}'. Expected one of {BATCH_STRATEGIES}"
            )
        return value

    @field_validator("provider_order")
    @classmethod
    def _known_providers(cls, value: str) -> str:
        names = [n.strip().lower() for n in value.split(",") if n.strip()]
        unknown = [n for n in names if n not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(
                f"Unknown providers in provider_order: {unknown}. "
                f"Known: {list(KNOWN_PROVIDERS)}"
            )
        if len(set(names)) != len(names):
            raise ValueError("provider_order contains duplicates")
        return ",".join(names)

    @field_validator("true_false_labels")
    @classmethod
    def _distinct_labels(cls, value: Tuple[str, str]) -> Tuple[str, str]:
        first, second = (label.strip() for label in value)
        if not first or not second or first == second:
            raise ValueError("true_false_labels must be two distinct non-empty labels")
        return (first, second)

    @property
    def provider_order_list(self) -> List[str]:
        """Configured provider order as a list."""
        return self.provider_order.split(",") if self.provider_order else []

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list."""
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


# Global settings instance
settings = Settings()
