"""Provider adapters and the HTTP client."""

from .base import HttpClient, MessageAdapter, RawResponse
from .http import AsyncHttpClient
from .openai import OpenAIResponsesAdapter

__all__ = [
    "AsyncHttpClient",
    "HttpClient",
    "MessageAdapter",
    "OpenAIResponsesAdapter",
    "RawResponse",
]
