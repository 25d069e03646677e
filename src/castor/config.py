"""Configuration: frozen Config with explicit provider/model requirements."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Literal

from dotenv import load_dotenv

from castor._http import DEFAULT_OPENAI_BASE_URL
from castor.errors import ConfigurationError
from castor.retry import RetryPolicy

load_dotenv()

ProviderName = Literal["openai"]

_API_KEY_ENV_VARS: dict[ProviderName, str] = {
    "openai": "OPENAI_API_KEY",
}
_BASE_URL_ENV_VARS: dict[ProviderName, str] = {
    "openai": "OPENAI_BASE_URL",
}
_DEFAULT_BASE_URLS: dict[ProviderName, str] = {
    "openai": DEFAULT_OPENAI_BASE_URL,
}


@dataclass(frozen=True)
class Config:
    """Immutable connection settings for one provider.

    API keys and base URLs are auto-resolved from standard environment
    variables when not passed explicitly.

    Example:
        config = Config(provider="openai", model="gpt-4o-mini")
        # API key is resolved from OPENAI_API_KEY
    """

    provider: ProviderName
    model: str
    api_key: str | None = None
    #: Auto-resolved from ``OPENAI_BASE_URL`` when *None*.
    base_url: str | None = None
    organization: str | None = None
    timeout_s: float = 60.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Auto-resolve credentials and validate configuration."""
        if self.provider not in _API_KEY_ENV_VARS:
            raise ConfigurationError(
                f"Unknown provider: {self.provider!r}",
                hint="Supported providers: 'openai'",
            )
        if not isinstance(self.model, str) or not self.model.strip():
            raise ConfigurationError(
                "model must be a non-empty string",
                hint="Pass Config(provider='openai', model='gpt-4o-mini').",
            )
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP request, in seconds.",
            )

        if self.api_key is None:
            object.__setattr__(
                self, "api_key", os.environ.get(_API_KEY_ENV_VARS[self.provider])
            )
        if not self.api_key:
            env_var = _API_KEY_ENV_VARS[self.provider]
            raise ConfigurationError(
                f"API key required for {self.provider}",
                hint=f"Set {env_var} environment variable or pass api_key=...",
            )

        if self.base_url is None:
            object.__setattr__(
                self,
                "base_url",
                os.environ.get(_BASE_URL_ENV_VARS[self.provider])
                or _DEFAULT_BASE_URLS[self.provider],
            )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(provider={self.provider!r}, model={self.model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r})"
        )

    __repr__ = __str__
