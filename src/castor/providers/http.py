"""httpx-backed HTTP client for provider APIs."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import json
import logging
import re
from typing import TYPE_CHECKING, Any

import httpx

from castor.providers._errors import error_from_response, wrap_transport_error
from castor.providers.base import RawResponse
from castor.retry import RetryPolicy, retry_async, should_retry_send, should_retry_side_effect
from castor.types import RateLimit

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from castor.config import Config

logger = logging.getLogger(__name__)


class AsyncHttpClient:
    """JSON-over-HTTP client with bounded retries.

    One instance may be shared by concurrent generation calls; it holds no
    per-call state.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        organization: str | None = None,
        timeout_s: float = 60.0,
        retry: RetryPolicy | None = None,
        provider: str = "openai",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if organization:
            headers["OpenAI-Organization"] = organization
        self.provider = provider
        self.retry = retry or RetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: Config, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> AsyncHttpClient:
        """Build a client from a resolved ``Config``."""
        return cls(
            base_url=config.base_url,
            api_key=config.api_key or "",
            organization=config.organization,
            timeout_s=config.timeout_s,
            retry=config.retry,
            provider=config.provider,
            transport=transport,
        )

    async def post(
        self, path: str, payload: dict[str, Any], *, side_effect: bool = False
    ) -> RawResponse:
        """POST *payload* to *path*; raise ``TransportError`` on failure."""

        async def _once() -> RawResponse:
            try:
                resp = await self._client.post(path, json=payload)
            except asyncio.CancelledError:
                raise
            except httpx.HTTPError as e:
                raise wrap_transport_error(e, provider=self.provider, phase=path) from e

            raw = RawResponse(
                status_code=resp.status_code,
                body=_decode_body(resp),
                headers=dict(resp.headers),
            )
            if not raw.successful:
                raise error_from_response(
                    status_code=raw.status_code,
                    body=raw.body,
                    headers=raw.headers,
                    provider=self.provider,
                    phase=path,
                )
            return raw

        logger.debug("POST %s", path)
        if self.retry.max_attempts <= 1:
            return await _once()
        return await retry_async(
            _once,
            policy=self.retry,
            should_retry=should_retry_side_effect if side_effect else should_retry_send,
        )

    async def aclose(self) -> None:
        """Close underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return resp.text


_RATE_LIMIT_HEADER = re.compile(r"^x-ratelimit-(limit|remaining|reset)-(.+)$")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_rate_limits(
    headers: Mapping[str, str], *, now: datetime | None = None
) -> tuple[RateLimit, ...]:
    """Parse ``x-ratelimit-{limit,remaining,reset}-<name>`` headers.

    Reset values are durations such as ``"6m0s"`` or ``"20ms"`` and become
    absolute ``resets_at`` timestamps relative to *now*.
    """
    now = now or datetime.now(timezone.utc)
    buckets: dict[str, dict[str, Any]] = {}
    for key, value in headers.items():
        match = _RATE_LIMIT_HEADER.match(key.lower())
        if match is None:
            continue
        field_name, name = match.groups()
        bucket = buckets.setdefault(name, {})
        if field_name == "reset":
            seconds = _parse_duration(value)
            if seconds is not None:
                bucket["resets_at"] = now + timedelta(seconds=seconds)
        else:
            try:
                bucket[field_name] = int(value)
            except (TypeError, ValueError):
                logger.debug("Ignoring malformed rate-limit header %s=%r", key, value)

    return tuple(
        RateLimit(
            name=name,
            limit=fields.get("limit"),
            remaining=fields.get("remaining"),
            resets_at=fields.get("resets_at"),
        )
        for name, fields in sorted(buckets.items())
    )


def _parse_duration(value: str) -> float | None:
    value = value.strip()
    try:
        return float(value)
    except ValueError:
        pass
    parts = _DURATION_PART.findall(value)
    if not parts or "".join(n + u for n, u in parts) != value:
        return None
    return sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
