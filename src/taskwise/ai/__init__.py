"""AI enrichment pipeline for tasks and notes."""

from .client import AIAdapter, AIClientAdapter, backoff_delay
from .enrichment_service import EnrichmentService
from .inference import InferenceClient
from .parser import ParseResult, extract_json, validate_required_fields
from .providers import AnthropicProvider, OpenAIProvider, ProviderManager

__all__ = [
    "AIAdapter",
    "AIClientAdapter",
    "backoff_delay",
    "EnrichmentService",
    "InferenceClient",
    "ParseResult",
    "extract_json",
    "validate_required_fields",
    "ProviderManager",
    "OpenAIProvider",
    "AnthropicProvider",
]
