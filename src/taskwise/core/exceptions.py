"""Custom exceptions for the enrichment pipeline."""


class TaskwiseError(Exception):
    """Base exception for taskwise errors."""

    pass


class InvalidRequest(TaskwiseError):
    """Raised when the caller omits required input such as a title or text."""

    pass


class EnrichmentError(TaskwiseError):
    """Base exception for errors on the enrichment path.

    These never reach the end caller: the orchestrator routes every one of
    them to the heuristic fallback.
    """

    pass


class ServiceUnavailable(EnrichmentError):
    """The external AI service cannot be used for this call."""

    pass


class CredentialsMissing(ServiceUnavailable):
    """The adapter has no credentials for the requested operation."""

    pass


class TransientNetworkFailure(EnrichmentError):
    """A single call to the external service failed and may be retried."""

    pass


class MalformedResponse(EnrichmentError):
    """Model output does not contain a JSON object."""

    pass


class IncompleteResponse(EnrichmentError):
    """Model output is JSON but lacks required fields."""

    pass


class HeuristicExhausted(EnrichmentError):
    """A keyword heuristic failed to produce a default. Indicates a bug."""

    pass
