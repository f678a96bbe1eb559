"""Client for a Hugging Face style inference endpoint.

Covers the two task types the pipeline needs: zero-shot classification and
sentiment analysis. Both accept either the classic response layout
(``{"labels": [...], "scores": [...]}``) or the list-of-pairs layout
(``[{"label": ..., "score": ...}]``).
"""

import logging
from typing import Any

import httpx

from ..core.exceptions import MalformedResponse, TransientNetworkFailure
from ..models import ClassificationResult, SentimentResult

logger = logging.getLogger(__name__)

SENTIMENT_LABELS = {
    "label_0": "negative",
    "label_1": "neutral",
    "label_2": "positive",
}


def _normalize_sentiment_label(label: str) -> str:
    lowered = label.lower()
    return SENTIMENT_LABELS.get(lowered, lowered)


def _label_score_pairs(data: Any) -> list[tuple[str, float]]:
    """Flatten either response layout into (label, score) pairs."""
    if isinstance(data, dict) and "labels" in data and "scores" in data:
        return list(zip(data["labels"], data["scores"]))

    # Sentiment models wrap the pairs in one more list per input
    if isinstance(data, list) and data and isinstance(data[0], list):
        data = data[0]

    if isinstance(data, list) and all(
        isinstance(item, dict) and "label" in item and "score" in item for item in data
    ):
        return [(item["label"], item["score"]) for item in data]

    raise MalformedResponse(f"Unexpected inference response: {str(data)[:200]}")


class InferenceClient:
    """Calls hosted classification and sentiment models over HTTP."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _post(self, model: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}/{model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise TransientNetworkFailure(f"Inference call to {model} failed: {e}") from e
        except ValueError as e:
            raise MalformedResponse(f"Inference response from {model} is not JSON") from e

        # Model still loading, rate limited, etc.
        if isinstance(data, dict) and data.get("error"):
            raise TransientNetworkFailure(f"Inference error from {model}: {data['error']}")
        return data

    async def classify(
        self, model: str, text: str, candidate_labels: list[str]
    ) -> ClassificationResult:
        """Zero-shot classify ``text`` against ``candidate_labels``."""
        data = await self._post(
            model,
            {
                "inputs": text,
                "parameters": {"candidate_labels": candidate_labels, "multi_label": False},
            },
        )
        pairs = sorted(_label_score_pairs(data), key=lambda pair: pair[1], reverse=True)
        logger.debug("Classification for %r: %s", text[:60], pairs[:3])
        return ClassificationResult(
            labels=[label for label, _ in pairs],
            scores=[float(score) for _, score in pairs],
        )

    async def sentiment(self, model: str, text: str) -> SentimentResult:
        """Sentiment distribution for ``text``; the top label leads."""
        data = await self._post(model, {"inputs": text})
        pairs = _label_score_pairs(data)
        if not pairs:
            raise MalformedResponse(f"Empty sentiment response from {model}")

        distribution = {_normalize_sentiment_label(label): float(score) for label, score in pairs}
        label, score = max(distribution.items(), key=lambda item: item[1])
        return SentimentResult(label=label, score=score, distribution=distribution)
