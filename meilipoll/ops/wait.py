"""
Polling of enqueued tasks until they reach a terminal status.

Every mutating call against the server returns an :class:`EnqueuedTask` right away;
the work itself happens later. :class:`TaskWaiter` re-fetches a task until its status
is ``succeeded``, ``failed`` or ``canceled``. Nothing is cached between calls, so a
wait that failed can simply be started again with the same uid.
"""

from __future__ import annotations

import logging
import time
from typing import (
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Union,
)

from meilipoll.dto.task import Task, TaskUidOrEnqueuedTask, get_task_uid
from meilipoll.dto.wait import WaitOptions
from meilipoll.errors import TaskTimeoutError, WaitCanceledError
from meilipoll.io.cancel import CancelToken, interruptible_sleep

logger = logging.getLogger(__name__)

TaskFetcher = Callable[[int], Awaitable[Task]]
TaskHandles = Union[Iterable[TaskUidOrEnqueuedTask], AsyncIterable[TaskUidOrEnqueuedTask]]


class TaskWaiter:
    """
    Waits for tasks by polling ``fetch``.

    :param fetch: Coroutine function performing one ``GET /tasks/{uid}`` round trip.
        Its errors are propagated unchanged.
    :param default_options: Policy used when a call does not override it.
    """

    def __init__(self, fetch: TaskFetcher, default_options: Optional[WaitOptions] = None):
        self._fetch = fetch
        self._default_options = default_options or WaitOptions()

    @property
    def default_options(self) -> WaitOptions:
        return self._default_options

    def resolve_options(
        self,
        options: Optional[WaitOptions] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> WaitOptions:
        return self._default_options.merge(options, timeout=timeout, interval=interval)

    async def wait_for_task(
        self,
        task: TaskUidOrEnqueuedTask,
        options: Optional[WaitOptions] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Task:
        """
        Poll one task until it is resolved.

        :raises TaskTimeoutError: the deadline passed while the task was still pending.
        :raises WaitCanceledError: ``cancel_token`` was cancelled first. Cancellation
            wins when both conditions are observed at the same check.
        """
        uid = get_task_uid(task)
        options = options or self._default_options
        start = time.monotonic()
        bounded = options.deadline_enabled

        polls = 0
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                raise WaitCanceledError(uid, time.monotonic() - start)

            current = await self._fetch(uid)
            polls += 1
            if current.status.is_terminal:
                logger.info(f"Task {uid} resolved as {current.status.value} after {polls} poll(s)")
                return current
            logger.debug(f"Task {uid} is {current.status.value} (poll {polls})")

            if cancel_token is not None and cancel_token.cancelled:
                raise WaitCanceledError(uid, time.monotonic() - start)

            elapsed = time.monotonic() - start
            delay = options.interval
            if bounded:
                if elapsed >= options.timeout:
                    raise TaskTimeoutError(uid, options.timeout, elapsed)
                delay = min(delay, options.timeout - elapsed)

            if await interruptible_sleep(delay, cancel_token):
                raise WaitCanceledError(uid, time.monotonic() - start)

    async def wait_for_tasks_iter(
        self,
        tasks: TaskHandles,
        options: Optional[WaitOptions] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[Task]:
        """
        Wait for tasks one after another, yielding each as soon as it is resolved.

        The timeout applies to every task separately and starts when the wait for
        that task starts. The first error stops the iteration.
        """
        if hasattr(tasks, "__aiter__"):
            async for task in tasks:
                yield await self.wait_for_task(task, options, cancel_token)
        else:
            for task in tasks:
                yield await self.wait_for_task(task, options, cancel_token)

    async def wait_for_tasks(
        self,
        tasks: TaskHandles,
        options: Optional[WaitOptions] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> List[Task]:
        """Wait for all tasks in order; returns them in input order or raises the first error."""
        return [task async for task in self.wait_for_tasks_iter(tasks, options, cancel_token)]
