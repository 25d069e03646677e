"""Small HTTP-related constants shared across Castor."""

from __future__ import annotations

# Retryable status codes shared by error mapping and client retry.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
