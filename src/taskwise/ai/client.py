"""Adapter over the generative and inference backends with retry handling."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol, TypeVar

from ..core.config import AIConfig
from ..core.exceptions import (
    CredentialsMissing,
    ServiceUnavailable,
    TransientNetworkFailure,
)
from ..models import AIProvider, ClassificationResult, SentimentResult
from .inference import InferenceClient
from .providers import ProviderManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay before retry number ``attempt`` (1-based), capped."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)


class AIAdapter(Protocol):
    """What the enrichment service needs from an adapter."""

    @property
    def generation_available(self) -> bool: ...

    @property
    def inference_available(self) -> bool: ...

    async def generate_structured(self, prompt: str) -> str: ...

    def stream_text(self, prompt: str) -> AsyncIterator[str]: ...

    async def classify(
        self, text: str, candidate_labels: list[str]
    ) -> ClassificationResult: ...

    async def sentiment(self, text: str) -> SentimentResult: ...


class AIClientAdapter:
    """Single entry point for every call to an external AI service.

    Construction never fails for lack of credentials; operations that need a
    missing credential raise ``CredentialsMissing`` instead so callers can
    check ``generation_available`` / ``inference_available`` up front.
    """

    def __init__(
        self,
        config: AIConfig,
        provider_manager: ProviderManager | None = None,
        inference_client: InferenceClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.provider_manager = provider_manager or ProviderManager(config)
        if inference_client is None and config.inference_api_key:
            inference_client = InferenceClient(
                config.inference_api_key,
                config.inference_base_url,
                config.request_timeout,
            )
        self.inference_client = inference_client
        self._sleep = sleep

    @property
    def generation_available(self) -> bool:
        return self.config.enable_ai and self.provider_manager.has_providers

    @property
    def inference_available(self) -> bool:
        return self.config.enable_ai and self.inference_client is not None

    async def _with_retries(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` with a per-attempt timeout and exponential backoff."""
        attempts = self.config.max_retries
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=self.config.request_timeout)
            except (TransientNetworkFailure, TimeoutError) as e:
                logger.warning("%s attempt %d/%d failed: %s", operation, attempt, attempts, e)
                if attempt == attempts:
                    raise ServiceUnavailable(
                        f"{operation} failed after {attempts} attempts: {e}"
                    ) from e
                await self._sleep(
                    backoff_delay(
                        attempt, self.config.retry_base_delay, self.config.retry_max_delay
                    )
                )
        raise ServiceUnavailable(f"{operation} was not attempted")

    def _require_generation(self, preferred: AIProvider | None = None):
        if not self.config.enable_ai:
            raise CredentialsMissing("External AI is disabled by configuration")
        provider = self.provider_manager.get_provider(preferred)
        if provider is None:
            raise CredentialsMissing("No generative AI provider has credentials")
        return provider

    def _require_inference(self) -> InferenceClient:
        if not self.inference_available:
            raise CredentialsMissing("No inference API key configured")
        return self.inference_client

    async def generate_structured(
        self, prompt: str, preferred: AIProvider | None = None
    ) -> str:
        """Raw model text for ``prompt``; the caller extracts any JSON."""
        provider = self._require_generation(preferred)
        logger.debug("Generating with %s (%s)", provider.provider.value, provider.model_name)
        return await self._with_retries(
            f"{provider.provider.value} generation", lambda: provider.generate(prompt)
        )

    async def stream_text(
        self, prompt: str, preferred: AIProvider | None = None
    ) -> AsyncIterator[str]:
        """Yield reply chunks; every call opens a fresh stream.

        Streams are not retried: chunks may already have been consumed.
        """
        provider = self._require_generation(preferred)
        try:
            async for chunk in provider.stream(prompt):
                yield chunk
        except TransientNetworkFailure as e:
            raise ServiceUnavailable(f"{provider.provider.value} stream failed: {e}") from e

    async def classify(
        self, text: str, candidate_labels: list[str]
    ) -> ClassificationResult:
        """Zero-shot classification of ``text`` over ``candidate_labels``."""
        client = self._require_inference()
        return await self._with_retries(
            "classification",
            lambda: client.classify(self.config.classification_model, text, candidate_labels),
        )

    async def sentiment(self, text: str) -> SentimentResult:
        """Sentiment label and distribution for ``text``."""
        client = self._require_inference()
        return await self._with_retries(
            "sentiment", lambda: client.sentiment(self.config.sentiment_model, text)
        )
