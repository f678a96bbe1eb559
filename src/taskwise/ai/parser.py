"""Extraction of JSON payloads from free-form model text."""

import json
import re
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import IncompleteResponse, MalformedResponse

# Greedy: from the first "{" to the last "}" across lines
JSON_SPAN = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class ParseResult:
    """Either a decoded JSON object or the reason there is none."""

    value: dict[str, Any] | None = None
    error: MalformedResponse | None = None

    @classmethod
    def ok(cls, value: dict[str, Any]) -> "ParseResult":
        return cls(value=value)

    @classmethod
    def fail(cls, message: str) -> "ParseResult":
        return cls(error=MalformedResponse(message))

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> dict[str, Any]:
        """Return the object or raise the carried ``MalformedResponse``."""
        if self.error is not None:
            raise self.error
        return self.value


def extract_json(raw_text: str) -> ParseResult:
    """Find the outermost ``{...}`` span in ``raw_text`` and decode it."""
    match = JSON_SPAN.search(raw_text or "")
    if not match:
        return ParseResult.fail("No JSON object found in model response")

    try:
        decoded = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        return ParseResult.fail(f"Invalid JSON in model response: {e}")

    if not isinstance(decoded, dict):
        return ParseResult.fail("Model response JSON is not an object")
    return ParseResult.ok(decoded)


def validate_required_fields(obj: dict[str, Any], field_names: list[str]) -> dict[str, Any]:
    """Ensure every named field is present and truthy.

    Raises:
        IncompleteResponse: If any field is missing or falsy.
    """
    missing = [name for name in field_names if not obj.get(name)]
    if missing:
        raise IncompleteResponse(f"Missing required field(s): {', '.join(missing)}")
    return obj
