"""Exception hierarchy and HTTP error mapping for meilipoll."""

from __future__ import annotations

from typing import Any, Dict, Optional

TASK_NOT_FOUND_CODE = "task_not_found"


class MeiliPollError(Exception):
    """
    Base exception for meilipoll.

    Attributes:
        details: Optional structured information (e.g., HTTP status, error code).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class CommunicationError(MeiliPollError):
    """Raised when the round trip itself fails (unreachable host, bad payload, unmapped status)."""


class ApiError(MeiliPollError):
    """Raised when the server answers with a structured error body."""

    def __init__(
        self,
        message: str,
        *,
        http_status: Optional[int] = None,
        code: Optional[str] = None,
        type: Optional[str] = None,
        link: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            details={"http_status": http_status, "code": code, "type": type, "link": link},
            cause=cause,
        )
        self.http_status = http_status
        self.code = code
        self.type = type
        self.link = link


class TaskNotFoundError(ApiError):
    """Raised when the server reports no task with the requested uid."""

    def __init__(self, uid: int, message: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("http_status", 404)
        kwargs.setdefault("code", TASK_NOT_FOUND_CODE)
        super().__init__(message or f"Task `{uid}` not found.", **kwargs)
        self.uid = uid


class WaitError(MeiliPollError):
    """Base class for a wait that ended before the task reached a terminal status."""

    def __init__(self, message: str, *, uid: int, elapsed: float) -> None:
        super().__init__(message, details={"uid": uid, "elapsed": elapsed})
        self.uid = uid
        self.elapsed = elapsed


class TaskTimeoutError(WaitError):
    """Raised when the deadline passed while the task was still enqueued or processing."""

    def __init__(self, uid: int, timeout: float, elapsed: float) -> None:
        super().__init__(
            f"timeout of {timeout}s has exceeded on task {uid} "
            f"when waiting for it to be resolved (waited {elapsed:.3f}s).",
            uid=uid,
            elapsed=elapsed,
        )
        self.timeout = timeout
        self.details["timeout"] = timeout


class WaitCanceledError(WaitError):
    """Raised when the caller canceled the wait before the task resolved."""

    def __init__(self, uid: int, elapsed: float) -> None:
        super().__init__(
            f"waiting for task {uid} was canceled after {elapsed:.3f}s.",
            uid=uid,
            elapsed=elapsed,
        )


def api_error_from_payload(
    payload: Dict[str, Any],
    http_status: int,
    *,
    uid: Optional[int] = None,
    cause: Optional[BaseException] = None,
) -> ApiError:
    """
    Build the matching :class:`ApiError` subclass from a decoded error body.

    :param payload: Error body, e.g. ``{"message": ..., "code": ..., "type": ..., "link": ...}``.
    :param http_status: HTTP status code of the response.
    :param uid: Task uid the request was about, if any.
    """
    message = payload.get("message") or f"Request failed with status {http_status}"
    kwargs = dict(
        http_status=http_status,
        code=payload.get("code"),
        type=payload.get("type"),
        link=payload.get("link"),
        cause=cause,
    )
    if uid is not None and (payload.get("code") == TASK_NOT_FOUND_CODE or http_status == 404):
        return TaskNotFoundError(uid, message, **kwargs)
    return ApiError(message, **kwargs)
