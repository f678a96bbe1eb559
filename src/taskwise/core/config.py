"""Application configuration management."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..models import AIProvider

# Load environment variables from .env file
load_dotenv()

DEFAULT_INFERENCE_BASE_URL = "https://router.huggingface.co/hf-inference/models"


class AIConfig(BaseModel):
    """External AI service configuration."""

    enable_ai: bool = Field(default=True, description="Use external AI services")

    # Generative text providers
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model to use")
    anthropic_model: str = Field(
        default="claude-3-haiku-20240307", description="Anthropic model to use"
    )
    default_provider: AIProvider = Field(
        default=AIProvider.OPENAI, description="Preferred generative provider"
    )

    # Classification / sentiment inference endpoint
    inference_api_key: str | None = Field(
        default=None, description="Bearer token for the inference endpoint"
    )
    inference_base_url: str = Field(default=DEFAULT_INFERENCE_BASE_URL)
    classification_model: str = Field(default="facebook/bart-large-mnli")
    sentiment_model: str = Field(
        default="cardiffnlp/twitter-roberta-base-sentiment-latest"
    )

    # Timeouts and retries
    request_timeout: float = Field(
        default=10.0, gt=0, description="Per-call timeout in seconds"
    )
    max_retries: int = Field(default=3, ge=1, description="Maximum attempts per call")
    retry_base_delay: float = Field(
        default=1.0, ge=0, description="First backoff delay in seconds"
    )
    retry_max_delay: float = Field(default=8.0, ge=0, description="Backoff cap")

    # Batch throttling
    batch_limit: int = Field(default=10, ge=1, description="Max tasks per batch")
    batch_delay: float = Field(
        default=0.1, ge=0, description="Pause between batch items in seconds"
    )


class ScoringConfig(BaseModel):
    """Tunable weights and confidence constants.

    The defaults are uncalibrated placeholders, not measured values.
    """

    sentiment_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    keyword_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    due_date_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    high_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    low_threshold: float = Field(default=0.3, ge=0.0, le=1.0)

    # Generative parsing returns no calibrated confidence
    ai_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    sentiment_priority_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    recommendation_threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class AppConfig(BaseModel):
    """Main application configuration."""

    ai: AIConfig = Field(default_factory=AIConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    # Application settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def get_app_config() -> AppConfig:
    """Get application configuration from environment and defaults."""
    ai_config = AIConfig(
        enable_ai=_env_flag("TASKWISE_ENABLE_AI", "true"),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        openai_model=os.getenv("TASKWISE_OPENAI_MODEL", "gpt-4o-mini"),
        anthropic_model=os.getenv(
            "TASKWISE_ANTHROPIC_MODEL", "claude-3-haiku-20240307"
        ),
        default_provider=AIProvider(
            os.getenv("TASKWISE_DEFAULT_AI_PROVIDER", "openai")
        ),
        inference_api_key=os.getenv("HUGGINGFACE_API_KEY") or None,
        inference_base_url=os.getenv(
            "TASKWISE_INFERENCE_BASE_URL", DEFAULT_INFERENCE_BASE_URL
        ),
        classification_model=os.getenv(
            "TASKWISE_CLASSIFICATION_MODEL", "facebook/bart-large-mnli"
        ),
        sentiment_model=os.getenv(
            "TASKWISE_SENTIMENT_MODEL",
            "cardiffnlp/twitter-roberta-base-sentiment-latest",
        ),
        request_timeout=float(os.getenv("TASKWISE_AI_REQUEST_TIMEOUT", "10")),
        max_retries=int(os.getenv("TASKWISE_AI_MAX_RETRIES", "3")),
        retry_base_delay=float(os.getenv("TASKWISE_AI_RETRY_BASE_DELAY", "1.0")),
        retry_max_delay=float(os.getenv("TASKWISE_AI_RETRY_MAX_DELAY", "8.0")),
        batch_limit=int(os.getenv("TASKWISE_BATCH_LIMIT", "10")),
        batch_delay=float(os.getenv("TASKWISE_BATCH_DELAY", "0.1")),
    )

    return AppConfig(
        ai=ai_config,
        debug=_env_flag("TASKWISE_DEBUG", "false"),
        log_level=os.getenv("TASKWISE_LOG_LEVEL", "INFO").upper(),
    )
