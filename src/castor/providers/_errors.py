"""Provider-side error helpers.

Everything that goes wrong between "payload built" and "JSON body decoded"
surfaces as ``TransportError`` with stable retry metadata.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx

from castor._http import RETRYABLE_STATUS_CODES
from castor.errors import RateLimitError, TransportError, _walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Mapping


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Return the ``Retry-After`` delay in seconds, if present and numeric."""
    if headers is None:
        return None
    raw = headers.get("retry-after") or headers.get("Retry-After")
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _auth_hint(provider: str, status_code: int | None) -> str | None:
    if status_code in {401, 403}:
        env_var = "OPENAI_API_KEY" if provider == "openai" else "API key"
        return f"Check credentials/permissions (try setting {env_var} or Config.api_key)."
    return None


def error_from_response(
    *,
    status_code: int,
    body: Any,
    headers: Mapping[str, str] | None,
    provider: str,
    phase: str,
) -> TransportError:
    """Build a ``TransportError`` for a failed HTTP response."""
    detail = ""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            detail = str(err.get("message") or err.get("type") or "")
        elif isinstance(err, str):
            detail = err

    retry_after_s = parse_retry_after(headers)
    err_cls: type[TransportError] = RateLimitError if status_code == 429 else TransportError
    message = f"{provider} {phase} failed (status={status_code})"
    return err_cls(
        f"{message}: {detail}" if detail else message,
        hint=_auth_hint(provider, status_code),
        retryable=status_code in RETRYABLE_STATUS_CODES or retry_after_s is not None,
        status_code=status_code,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
    )


def wrap_transport_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
) -> TransportError:
    """Map httpx/network exceptions into ``TransportError``."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, TransportError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc

    retryable = False
    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.TimeoutException, httpx.TransportError, TimeoutError)):
            retryable = True
            break

    cause = str(exc) or type(exc).__name__
    return TransportError(
        f"{provider} {phase} failed: {cause}",
        retryable=retryable,
        provider=provider,
        phase=phase,
    )


def error_from_body(
    *,
    status_code: int,
    body: Any,
    headers: Mapping[str, str] | None,
    provider: str,
    phase: str,
) -> TransportError | None:
    """Return a ``TransportError`` when a 2xx body still carries an ``error``."""
    if not isinstance(body, dict) or not body.get("error"):
        return None
    return error_from_response(
        status_code=status_code,
        body=body,
        headers=headers,
        provider=provider,
        phase=phase,
    )
