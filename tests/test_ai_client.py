"""Tests for the AI client adapter, providers and inference client."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import openai
import pytest

from taskwise.ai.client import AIClientAdapter, backoff_delay
from taskwise.ai.inference import InferenceClient
from taskwise.ai.providers import (
    AnthropicProvider,
    BaseLLMProvider,
    OpenAIProvider,
    ProviderManager,
)
from taskwise.core.config import AIConfig
from taskwise.core.exceptions import (
    CredentialsMissing,
    MalformedResponse,
    ServiceUnavailable,
    TransientNetworkFailure,
)
from taskwise.models import AIProvider

BASE_URL = "https://inference.test/models"


class ScriptedProvider(BaseLLMProvider):
    """Provider whose replies come from a list of values or exceptions."""

    provider = AIProvider.OPENAI

    def __init__(self, replies, chunks=None, delay: float = 0.0):
        super().__init__("test-key", "scripted-model")
        self.replies = list(replies)
        self.chunks = list(chunks or [])
        self.delay = delay
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(self, prompt: str):
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def health_check(self) -> bool:
        return True


def make_adapter(provider=None, inference_client=None, sleep=None, **config_overrides):
    """Adapter with an optional scripted provider and no real credentials."""
    config = AIConfig(**config_overrides)
    manager = ProviderManager(config)
    if provider is not None:
        manager.providers[provider.provider] = provider
    return AIClientAdapter(
        config,
        provider_manager=manager,
        inference_client=inference_client,
        sleep=sleep or AsyncMock(),
    )


def mock_inference(handler) -> InferenceClient:
    return InferenceClient(
        "hf-test", BASE_URL, timeout=5.0, transport=httpx.MockTransport(handler)
    )


class TestBackoffDelay:
    """Test the retry delay schedule."""

    def test_exponential_growth(self):
        """Test delays double per attempt."""
        assert [backoff_delay(n, 1.0, 8.0) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_capped(self):
        """Test delays never exceed the cap."""
        assert backoff_delay(5, 1.0, 8.0) == 8.0


class TestRetries:
    """Test retry handling around generation calls."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, recording_sleep):
        """Test two transient failures then success."""
        provider = ScriptedProvider(
            [TransientNetworkFailure("reset"), TransientNetworkFailure("reset"), "{}"]
        )
        adapter = make_adapter(provider, sleep=recording_sleep)

        assert await adapter.generate_structured("prompt") == "{}"
        assert provider.calls == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_service_unavailable(self, recording_sleep):
        """Test the final failure becomes ServiceUnavailable."""
        provider = ScriptedProvider([TransientNetworkFailure("down")] * 3)
        adapter = make_adapter(provider, sleep=recording_sleep)

        with pytest.raises(ServiceUnavailable):
            await adapter.generate_structured("prompt")
        assert provider.calls == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, recording_sleep):
        """Test per-attempt timeouts count as transient failures."""
        provider = ScriptedProvider(["late", "late"], delay=1.0)
        adapter = make_adapter(
            provider, sleep=recording_sleep, request_timeout=0.01, max_retries=2
        )

        with pytest.raises(ServiceUnavailable):
            await adapter.generate_structured("prompt")
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_malformed_response_is_not_retried(self, recording_sleep):
        """Test non-transient errors propagate on the first attempt."""
        provider = ScriptedProvider([MalformedResponse("bad"), "{}"])
        adapter = make_adapter(provider, sleep=recording_sleep)

        with pytest.raises(MalformedResponse):
            await adapter.generate_structured("prompt")
        assert provider.calls == 1
        assert recording_sleep.delays == []


class TestCredentials:
    """Test behavior without usable credentials."""

    @pytest.mark.asyncio
    async def test_no_provider_raises_credentials_missing(self):
        """Test generation without any key."""
        adapter = make_adapter()
        assert not adapter.generation_available
        with pytest.raises(CredentialsMissing):
            await adapter.generate_structured("prompt")

    @pytest.mark.asyncio
    async def test_no_inference_key_raises_credentials_missing(self):
        """Test classification without an inference key."""
        adapter = make_adapter()
        assert not adapter.inference_available
        with pytest.raises(CredentialsMissing):
            await adapter.classify("text", ["a", "b"])
        with pytest.raises(CredentialsMissing):
            await adapter.sentiment("text")

    @pytest.mark.asyncio
    async def test_disabled_ai_ignores_providers(self):
        """Test enable_ai=False makes configured providers unusable."""
        provider = ScriptedProvider(["{}"])
        adapter = make_adapter(provider, enable_ai=False)
        assert not adapter.generation_available
        with pytest.raises(CredentialsMissing):
            await adapter.generate_structured("prompt")
        assert provider.calls == 0

    def test_credentials_missing_is_service_unavailable(self):
        """Test callers can treat missing credentials as unavailability."""
        assert issubclass(CredentialsMissing, ServiceUnavailable)


class TestStreaming:
    """Test streamed generation."""

    @pytest.mark.asyncio
    async def test_yields_chunks(self):
        """Test chunks pass through in order."""
        adapter = make_adapter(ScriptedProvider([], chunks=["a", "b", "c"]))
        assert [chunk async for chunk in adapter.stream_text("prompt")] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_stream_failure(self):
        """Test a failing stream raises ServiceUnavailable after earlier chunks."""
        adapter = make_adapter(
            ScriptedProvider([], chunks=["a", TransientNetworkFailure("cut")])
        )
        received = []
        with pytest.raises(ServiceUnavailable):
            async for chunk in adapter.stream_text("prompt"):
                received.append(chunk)
        assert received == ["a"]


class TestProviderManager:
    """Test provider selection."""

    def test_registers_only_configured_providers(self):
        """Test providers without keys are skipped."""
        manager = ProviderManager(AIConfig(anthropic_api_key="sk-ant-test"))
        assert list(manager.providers) == [AIProvider.ANTHROPIC]
        assert manager.has_providers

    def test_preference_order(self):
        """Test preferred, then default, then any provider."""
        manager = ProviderManager(
            AIConfig(openai_api_key="sk-test", anthropic_api_key="sk-ant-test")
        )
        assert manager.get_provider().provider == AIProvider.OPENAI
        assert manager.get_provider(AIProvider.ANTHROPIC).provider == AIProvider.ANTHROPIC

    def test_falls_back_to_any_provider(self):
        """Test a missing preferred provider falls back."""
        manager = ProviderManager(AIConfig(anthropic_api_key="sk-ant-test"))
        assert manager.get_provider(AIProvider.OPENAI).provider == AIProvider.ANTHROPIC

    def test_no_providers(self):
        """Test an empty manager returns None."""
        assert ProviderManager(AIConfig()).get_provider() is None


class TestSDKProviders:
    """Test SDK error translation."""

    @pytest.mark.asyncio
    async def test_openai_generate(self):
        """Test the completion text is returned."""
        provider = OpenAIProvider("sk-test")
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"a": 1}'))]
        )
        provider.client.chat.completions.create = AsyncMock(return_value=response)
        assert await provider.generate("prompt") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_openai_error_is_transient(self):
        """Test OpenAI API errors become TransientNetworkFailure."""
        provider = OpenAIProvider("sk-test")
        provider.client.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=httpx.Request("POST", BASE_URL))
        )
        with pytest.raises(TransientNetworkFailure):
            await provider.generate("prompt")

    @pytest.mark.asyncio
    async def test_anthropic_generate_joins_text_blocks(self):
        """Test text blocks are concatenated."""
        provider = AnthropicProvider("sk-ant-test")
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"a": '),
                SimpleNamespace(type="text", text="1}"),
            ]
        )
        provider.client.messages.create = AsyncMock(return_value=response)
        assert await provider.generate("prompt") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_anthropic_error_is_transient(self):
        """Test Anthropic API errors become TransientNetworkFailure."""
        provider = AnthropicProvider("sk-ant-test")
        provider.client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(request=httpx.Request("POST", BASE_URL))
        )
        with pytest.raises(TransientNetworkFailure):
            await provider.generate("prompt")


class TestInferenceClient:
    """Test the HTTP inference client."""

    @pytest.mark.asyncio
    async def test_classify_sorts_labels(self):
        """Test request shape and score ordering."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"labels": ["a", "b", "c"], "scores": [0.2, 0.7, 0.1]}
            )

        result = await mock_inference(handler).classify("zero-shot", "text", ["a", "b", "c"])

        assert result.labels == ["b", "a", "c"]
        assert result.top == ("b", 0.7)
        assert seen["url"] == f"{BASE_URL}/zero-shot"
        assert seen["auth"] == "Bearer hf-test"
        assert seen["body"]["parameters"]["candidate_labels"] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_classify_accepts_pair_layout(self):
        """Test the list-of-pairs response layout."""

        def handler(request):
            return httpx.Response(
                200, json=[{"label": "x", "score": 0.3}, {"label": "y", "score": 0.6}]
            )

        result = await mock_inference(handler).classify("m", "text", ["x", "y"])
        assert result.labels == ["y", "x"]

    @pytest.mark.asyncio
    async def test_sentiment_normalizes_labels(self):
        """Test LABEL_n names map to sentiment words."""

        def handler(request):
            return httpx.Response(
                200,
                json=[
                    [
                        {"label": "LABEL_0", "score": 0.1},
                        {"label": "LABEL_1", "score": 0.2},
                        {"label": "LABEL_2", "score": 0.7},
                    ]
                ],
            )

        result = await mock_inference(handler).sentiment("m", "great news")
        assert result.label == "positive"
        assert result.score == 0.7
        assert result.distribution == {"negative": 0.1, "neutral": 0.2, "positive": 0.7}

    @pytest.mark.asyncio
    async def test_http_error_is_transient(self):
        """Test 5xx responses become TransientNetworkFailure."""

        def handler(request):
            return httpx.Response(503, json={"error": "unavailable"})

        with pytest.raises(TransientNetworkFailure):
            await mock_inference(handler).sentiment("m", "text")

    @pytest.mark.asyncio
    async def test_error_body_is_transient(self):
        """Test an error payload with a 200 status."""

        def handler(request):
            return httpx.Response(200, json={"error": "Model is currently loading"})

        with pytest.raises(TransientNetworkFailure):
            await mock_inference(handler).classify("m", "text", ["a"])

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        """Test a non-JSON body."""

        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(MalformedResponse):
            await mock_inference(handler).classify("m", "text", ["a"])

    @pytest.mark.asyncio
    async def test_adapter_retries_inference(self, recording_sleep):
        """Test the adapter retries a flaky inference endpoint."""
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 2:
                return httpx.Response(503)
            return httpx.Response(200, json={"labels": ["a"], "scores": [0.9]})

        adapter = make_adapter(inference_client=mock_inference(handler), sleep=recording_sleep)
        result = await adapter.classify("text", ["a"])

        assert result.labels == ["a"]
        assert len(attempts) == 2
        assert recording_sleep.delays == [1.0]
