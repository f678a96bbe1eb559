"""Generative text providers built on the OpenAI and Anthropic SDKs."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from ..core.config import AIConfig
from ..core.exceptions import TransientNetworkFailure
from ..models import AIProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.2


class BaseLLMProvider(ABC):
    """Base class for LLM providers."""

    provider: AIProvider

    def __init__(self, api_key: str, model_name: str, timeout: float = 10.0):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the model's full text reply to ``prompt``."""
        pass

    @abstractmethod
    def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield the model's reply to ``prompt`` chunk by chunk."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is available."""
        pass


class OpenAIProvider(BaseLLMProvider):
    """OpenAI provider implementation."""

    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model_name: str = "gpt-4o-mini", timeout: float = 10.0):
        super().__init__(api_key, model_name, timeout)
        # Retries are owned by AIClientAdapter
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _messages(self, prompt: str) -> list[dict[str, str]]:
        return [{"role": "user", "content": prompt}]

    async def generate(self, prompt: str) -> str:
        """Run a chat completion and return the message text."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages(prompt),
                temperature=DEFAULT_TEMPERATURE,
            )
        except openai.APIError as e:
            raise TransientNetworkFailure(f"OpenAI request failed: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream a chat completion."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages(prompt),
                temperature=DEFAULT_TEMPERATURE,
                stream=True,
            )
            async for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APIError as e:
            raise TransientNetworkFailure(f"OpenAI stream failed: {e}") from e

    async def health_check(self) -> bool:
        """Check OpenAI API availability."""
        try:
            await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages("test"),
                max_tokens=1,
            )
            return True
        except openai.APIError as e:
            logger.debug("OpenAI health check failed: %s", e)
            return False


class AnthropicProvider(BaseLLMProvider):
    """Anthropic (Claude) provider implementation."""

    provider = AIProvider.ANTHROPIC

    def __init__(
        self, api_key: str, model_name: str = "claude-3-haiku-20240307", timeout: float = 10.0
    ):
        super().__init__(api_key, model_name, timeout)
        self.client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, prompt: str) -> str:
        """Create a message and join its text blocks."""
        try:
            response = await self.client.messages.create(
                model=self.model_name,
                max_tokens=DEFAULT_MAX_TOKENS,
                temperature=DEFAULT_TEMPERATURE,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise TransientNetworkFailure(f"Anthropic request failed: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream a message's text deltas."""
        try:
            async with self.client.messages.stream(
                model=self.model_name,
                max_tokens=DEFAULT_MAX_TOKENS,
                temperature=DEFAULT_TEMPERATURE,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            raise TransientNetworkFailure(f"Anthropic stream failed: {e}") from e

    async def health_check(self) -> bool:
        """Check Anthropic API availability."""
        try:
            await self.client.messages.create(
                model=self.model_name,
                max_tokens=1,
                messages=[{"role": "user", "content": "test"}],
            )
            return True
        except anthropic.APIError as e:
            logger.debug("Anthropic health check failed: %s", e)
            return False


class ProviderManager:
    """Holds the providers that have credentials and picks one per call."""

    def __init__(self, config: AIConfig):
        self.config = config
        self.providers: dict[AIProvider, BaseLLMProvider] = {}
        self._initialize_providers()

    def _initialize_providers(self):
        """Initialize providers whose API keys are configured."""
        if self.config.openai_api_key:
            self.providers[AIProvider.OPENAI] = OpenAIProvider(
                self.config.openai_api_key,
                self.config.openai_model,
                self.config.request_timeout,
            )

        if self.config.anthropic_api_key:
            self.providers[AIProvider.ANTHROPIC] = AnthropicProvider(
                self.config.anthropic_api_key,
                self.config.anthropic_model,
                self.config.request_timeout,
            )

    @property
    def has_providers(self) -> bool:
        return bool(self.providers)

    def get_provider(self, preferred: AIProvider | None = None) -> BaseLLMProvider | None:
        """Preferred provider, then the configured default, then any other."""
        for choice in (preferred, self.config.default_provider):
            if choice and choice in self.providers:
                return self.providers[choice]
        return next(iter(self.providers.values()), None)

    async def check_all(self) -> dict[AIProvider, bool]:
        """Run a health check against every configured provider."""
        return {
            name: await provider.health_check()
            for name, provider in self.providers.items()
        }
