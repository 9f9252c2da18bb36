from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pydantic import Field, PrivateAttr

from meilipoll.dto.base import BaseInfo

if TYPE_CHECKING:
    from meilipoll.api.task_api import TaskApi
    from meilipoll.dto.wait import WaitOptions
    from meilipoll.io.cancel import CancelToken


class TaskStatus(str, enum.Enum):
    ENQUEUED = "enqueued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses never change once reached."""
        return self not in (TaskStatus.ENQUEUED, TaskStatus.PROCESSING)


class TaskType(str, enum.Enum):
    DOCUMENT_ADDITION_OR_UPDATE = "documentAdditionOrUpdate"
    DOCUMENT_EDITION = "documentEdition"
    DOCUMENT_DELETION = "documentDeletion"
    SETTINGS_UPDATE = "settingsUpdate"
    INDEX_CREATION = "indexCreation"
    INDEX_DELETION = "indexDeletion"
    INDEX_UPDATE = "indexUpdate"
    INDEX_SWAP = "indexSwap"
    TASK_CANCELATION = "taskCancelation"
    TASK_DELETION = "taskDeletion"
    DUMP_CREATION = "dumpCreation"
    SNAPSHOT_CREATION = "snapshotCreation"
    UPGRADE_DATABASE = "upgradeDatabase"


class TaskError(BaseInfo):
    message: str
    code: Optional[str] = None
    type: Optional[str] = None
    link: Optional[str] = None


class Task(BaseInfo):
    """Full task object as returned by ``GET /tasks/{uid}``."""

    uid: int
    index_uid: Optional[str] = None
    status: TaskStatus
    type: Union[TaskType, str]
    batch_uid: Optional[int] = None
    canceled_by: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    error: Optional[TaskError] = None
    duration: Optional[str] = None
    enqueued_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class EnqueuedTask(BaseInfo):
    """Summarized task returned immediately by every mutating call."""

    task_uid: int
    index_uid: Optional[str] = None
    status: TaskStatus = TaskStatus.ENQUEUED
    type: Union[TaskType, str]
    enqueued_at: datetime

    _task_api: Optional["TaskApi"] = PrivateAttr(default=None)

    def bind(self, task_api: "TaskApi") -> "EnqueuedTask":
        """Attach the client used by :meth:`wait_task`."""
        self._task_api = task_api
        return self

    def _require_api(self) -> "TaskApi":
        if self._task_api is None:
            raise RuntimeError(
                f"EnqueuedTask {self.task_uid} is not bound to a client; "
                "use api.tasks.wait_for_task() instead."
            )
        return self._task_api

    def wait_task(
        self,
        options: Optional["WaitOptions"] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        cancel_token: Optional["CancelToken"] = None,
    ) -> Task:
        """
        Poll the task until it is resolved.

        Returns the resolved :class:`Task` when called outside an event loop and an
        awaitable inside one, same as :meth:`TaskApi.wait_for_task`.
        """
        return self._require_api().wait_for_task(
            self, options, timeout=timeout, interval=interval, cancel_token=cancel_token
        )

    async def wait_task_async(
        self,
        options: Optional["WaitOptions"] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        cancel_token: Optional["CancelToken"] = None,
    ) -> Task:
        """Awaitable form of :meth:`wait_task`."""
        return await self._require_api().wait_for_task(
            self, options, timeout=timeout, interval=interval, cancel_token=cancel_token
        )


class TasksResults(BaseInfo):
    results: List[Task] = Field(default_factory=list)
    total: Optional[int] = None
    limit: Optional[int] = None
    from_: Optional[int] = None
    next: Optional[int] = None


TaskUidOrEnqueuedTask = Union[int, EnqueuedTask]


def get_task_uid(task: TaskUidOrEnqueuedTask) -> int:
    if isinstance(task, EnqueuedTask):
        return task.task_uid
    if isinstance(task, bool) or not isinstance(task, int):
        raise TypeError(f"Expected a task uid or EnqueuedTask, got {task!r}")
    return task
