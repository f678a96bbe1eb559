"""Shared fixtures for taskwise tests."""

from collections import defaultdict
from datetime import datetime, timezone

import pytest

from taskwise.ai.enrichment_service import EnrichmentService
from taskwise.core.config import AIConfig, AppConfig
from taskwise.core.exceptions import ServiceUnavailable

FIXED_NOW = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)  # a Wednesday


class FakeAdapter:
    """In-memory adapter; each reply may be a value or an exception to raise."""

    def __init__(
        self,
        generation: bool = True,
        inference: bool = True,
        responses=None,
        chunks=None,
        classification=None,
        sentiment=None,
    ):
        self.generation_available = generation
        self.inference_available = inference
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.classification = classification
        self.sentiment_result = sentiment
        self.prompts: list[str] = []
        self.calls: dict[str, int] = defaultdict(int)

    async def generate_structured(self, prompt: str) -> str:
        self.calls["generate"] += 1
        self.prompts.append(prompt)
        if not self.responses:
            raise ServiceUnavailable("no scripted response")
        reply = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream_text(self, prompt: str):
        self.calls["stream"] += 1
        self.prompts.append(prompt)
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def classify(self, text: str, candidate_labels: list[str]):
        self.calls["classify"] += 1
        if self.classification is None or isinstance(self.classification, Exception):
            raise self.classification or ServiceUnavailable("classification down")
        return self.classification

    async def sentiment(self, text: str):
        self.calls["sentiment"] += 1
        if self.sentiment_result is None or isinstance(self.sentiment_result, Exception):
            raise self.sentiment_result or ServiceUnavailable("sentiment down")
        return self.sentiment_result


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that only records the delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fixed_now():
    """A fixed, timezone-aware 'now'."""
    return FIXED_NOW


@pytest.fixture
def fake_adapter_factory():
    """Build fake adapters with scripted replies."""
    return FakeAdapter


@pytest.fixture
def recording_sleep():
    """Sleep replacement that records requested delays."""
    return RecordingSleep()


@pytest.fixture
def make_service(recording_sleep):
    """Build an EnrichmentService around a fake adapter and a fixed clock."""

    def _make(adapter=None, config: AppConfig | None = None) -> EnrichmentService:
        return EnrichmentService(
            config or AppConfig(),
            adapter=adapter if adapter is not None else FakeAdapter(False, False),
            clock=lambda: FIXED_NOW,
            sleep=recording_sleep,
        )

    return _make


@pytest.fixture
def offline_service(recording_sleep):
    """Service with external AI disabled by configuration."""
    return EnrichmentService(
        AppConfig(ai=AIConfig(enable_ai=False)),
        clock=lambda: FIXED_NOW,
        sleep=recording_sleep,
    )
