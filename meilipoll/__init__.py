"""
Python client for a search engine server whose writes are processed as
asynchronous tasks.

Every mutating call returns an :class:`EnqueuedTask`; :class:`TaskApi` polls it
until it succeeds, fails or is canceled.
"""

__version__ = "0.1.0"

from meilipoll.api.api import Api
from meilipoll.dto.index import IndexInfo
from meilipoll.dto.task import EnqueuedTask, Task, TaskError, TasksResults, TaskStatus, TaskType
from meilipoll.dto.wait import DEFAULT_WAIT_INTERVAL, DEFAULT_WAIT_TIMEOUT, WaitOptions
from meilipoll.errors import (
    ApiError,
    CommunicationError,
    MeiliPollError,
    TaskNotFoundError,
    TaskTimeoutError,
    WaitCanceledError,
    WaitError,
)
from meilipoll.io.cancel import CancelToken
from meilipoll.io.credentials import ClientConfig
from meilipoll.ops.wait import TaskWaiter

__all__ = [
    "Api",
    "ApiError",
    "CancelToken",
    "ClientConfig",
    "CommunicationError",
    "DEFAULT_WAIT_INTERVAL",
    "DEFAULT_WAIT_TIMEOUT",
    "EnqueuedTask",
    "IndexInfo",
    "MeiliPollError",
    "Task",
    "TaskError",
    "TaskNotFoundError",
    "TaskStatus",
    "TaskTimeoutError",
    "TaskType",
    "TaskWaiter",
    "TasksResults",
    "WaitCanceledError",
    "WaitError",
    "WaitOptions",
]
