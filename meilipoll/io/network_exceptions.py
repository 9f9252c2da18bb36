"""
Classification of transport failures and the retry decision for them.

The request loops in :class:`meilipoll.api._api._Api` hand every failure to
:func:`process_requests_exception`, which either sleeps before the next attempt or
raises the matching :mod:`meilipoll.errors` exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Union

import httpx
import requests

from meilipoll.errors import CommunicationError, MeiliPollError, api_error_from_payload

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

AnyResponse = Union[requests.Response, httpx.Response, None]


def _status_code(response: AnyResponse) -> Optional[int]:
    if response is None:
        return None
    return getattr(response, "status_code", None)


def _decode_error_body(response: AnyResponse) -> Optional[Dict[str, Any]]:
    if response is None:
        return None
    try:
        payload = json.loads(response.content.decode("utf-8"))
    except (ValueError, UnicodeDecodeError, httpx.ResponseNotRead):
        return None
    return payload if isinstance(payload, dict) else None


def is_retryable(exc: BaseException, response: AnyResponse = None) -> bool:
    """Connection-level failures and 429/5xx responses are worth another attempt."""
    status = _status_code(response)
    if status is not None and isinstance(exc, (requests.HTTPError, httpx.HTTPStatusError)):
        return status in RETRY_STATUS_CODES
    return isinstance(
        exc,
        (
            requests.ConnectionError,
            requests.Timeout,
            httpx.TransportError,
        ),
    )


def convert_exception(exc: BaseException, url: str, response: AnyResponse = None) -> MeiliPollError:
    """
    Map a ``requests`` / ``httpx`` failure to a meilipoll error.

    A response with a JSON error body becomes an :class:`ApiError`; anything else,
    including error responses the server did not describe, is a :class:`CommunicationError`.
    """
    if isinstance(exc, MeiliPollError):
        return exc
    status = _status_code(response)
    if status is not None and status >= 400:
        payload = _decode_error_body(response)
        if payload is not None and "message" in payload:
            return api_error_from_payload(payload, status, cause=exc)
        return CommunicationError(
            f"Request to {url} failed with status {status}",
            details={"http_status": status, "url": url},
            cause=exc,
        )
    return CommunicationError(
        f"Request to {url} has failed: {exc}", details={"url": url}, cause=exc
    )


def _should_retry(
    logger: logging.Logger,
    exc: BaseException,
    method: str,
    url: str,
    verbose: bool,
    swallow_exc: bool,
    response: AnyResponse,
    retry_info: Optional[Dict[str, int]],
) -> bool:
    retry_info = retry_info or {}
    retry_idx = retry_info.get("retry_idx", 1)
    retry_limit = retry_info.get("retry_limit", 1)

    if not swallow_exc or retry_idx >= retry_limit or not is_retryable(exc, response):
        raise convert_exception(exc, url, response) from exc

    if verbose:
        logger.warning(
            f"Retrying {method} {url} ({retry_idx}/{retry_limit}) "
            f"after {type(exc).__name__}: {exc}"
        )
    return True


def process_requests_exception(
    logger: logging.Logger,
    exc: BaseException,
    method: str,
    url: str,
    verbose: bool = True,
    swallow_exc: bool = False,
    sleep_sec: float = 1,
    response: AnyResponse = None,
    retry_info: Optional[Dict[str, int]] = None,
) -> None:
    """
    Sleep before the next attempt, or raise the converted error if the failure is
    final: not retryable, retries exhausted, or ``swallow_exc`` is False.

    :param retry_info: ``{"retry_idx": <1-based attempt>, "retry_limit": <attempts>}``
    """
    if _should_retry(logger, exc, method, url, verbose, swallow_exc, response, retry_info):
        time.sleep(sleep_sec)


async def process_requests_exception_async(
    logger: logging.Logger,
    exc: BaseException,
    method: str,
    url: str,
    verbose: bool = True,
    swallow_exc: bool = False,
    sleep_sec: float = 1,
    response: AnyResponse = None,
    retry_info: Optional[Dict[str, int]] = None,
) -> None:
    """Async counterpart of :func:`process_requests_exception`."""
    if _should_retry(logger, exc, method, url, verbose, swallow_exc, response, retry_info):
        await asyncio.sleep(sleep_sec)


def process_unhandled_request(logger: logging.Logger, exc: BaseException, url: str) -> None:
    """Log and re-raise a failure that is not a transport error as a CommunicationError."""
    logger.error(f"Unhandled error for {url}: {exc!r}")
    raise CommunicationError(
        f"Request to {url} has failed: {exc!r}", details={"url": url}, cause=exc
    ) from exc
