from __future__ import annotations

from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Dict,
    Generator,
    List,
    Optional,
    Sequence,
    Union,
)

from pydantic import ValidationError

from meilipoll.api.module_api import ModuleApi
from meilipoll.dto.task import (
    EnqueuedTask,
    Task,
    TasksResults,
    TaskStatus,
    TaskType,
    TaskUidOrEnqueuedTask,
)
from meilipoll.dto.wait import WaitOptions
from meilipoll.errors import TASK_NOT_FOUND_CODE, ApiError, CommunicationError, TaskNotFoundError
from meilipoll.io.cancel import CancelToken
from meilipoll.io.decorators import on_bg_loop, sync_compatible, sync_compatible_generator
from meilipoll.ops.wait import TaskHandles, TaskWaiter

if TYPE_CHECKING:
    from meilipoll.api.api import Api


def _csv(values: Optional[Sequence[Any]]) -> Optional[str]:
    if values is None:
        return None
    return ",".join(v.value if hasattr(v, "value") else str(v) for v in values)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _tasks_filter(
    uids: Optional[Sequence[int]] = None,
    statuses: Optional[Sequence[Union[TaskStatus, str]]] = None,
    types: Optional[Sequence[Union[TaskType, str]]] = None,
    index_uids: Optional[Sequence[str]] = None,
    canceled_by: Optional[Sequence[int]] = None,
    before_enqueued_at: Optional[datetime] = None,
    after_enqueued_at: Optional[datetime] = None,
    before_finished_at: Optional[datetime] = None,
    after_finished_at: Optional[datetime] = None,
) -> Dict[str, Optional[str]]:
    return {
        "uids": _csv(uids),
        "statuses": _csv(statuses),
        "types": _csv(types),
        "indexUids": _csv(index_uids),
        "canceledBy": _csv(canceled_by),
        "beforeEnqueuedAt": _iso(before_enqueued_at),
        "afterEnqueuedAt": _iso(after_enqueued_at),
        "beforeFinishedAt": _iso(before_finished_at),
        "afterFinishedAt": _iso(after_finished_at),
    }


class TaskApi(ModuleApi):
    """
    Tasks of the server: lookup, listing, cancelation, deletion and waiting.

    The ``wait_*`` methods return results when called from synchronous code and
    awaitables (or async iterators) when called inside a running event loop.
    """

    def __init__(self, api: "Api", wait_options: Optional[WaitOptions] = None):
        super().__init__(api)
        self._waiter = TaskWaiter(self.get_task_async, wait_options)

    def _endpoint_prefix(self) -> str:
        return "tasks"

    @property
    def default_wait_options(self) -> WaitOptions:
        return self._waiter.default_options

    # --- Retrieval ------------------------------------------------
    def _parse_task(self, uid: int, payload: Any) -> Task:
        try:
            return Task.model_validate(payload)
        except ValidationError as exc:
            raise CommunicationError(
                f"Malformed task payload for task {uid}", details={"uid": uid}, cause=exc
            ) from exc

    @staticmethod
    def _not_found(uid: int, error: ApiError) -> Optional[TaskNotFoundError]:
        if error.code == TASK_NOT_FOUND_CODE or error.http_status == 404:
            return TaskNotFoundError(
                uid,
                str(error),
                http_status=error.http_status,
                code=error.code,
                type=error.type,
                link=error.link,
                cause=error,
            )
        return None

    def get_task(self, uid: int) -> Task:
        """
        Get one task.

        :raises TaskNotFoundError: no task with this uid exists.
        """
        try:
            response = self._api.get(f"{self.endpoint}/{uid}")
        except ApiError as error:
            not_found = self._not_found(uid, error)
            if not_found is not None:
                raise not_found from error
            raise
        return self._parse_task(uid, self._json(uid, response))

    async def get_task_async(self, uid: int) -> Task:
        """
        Single ``GET /tasks/{uid}`` round trip used as the polling fetcher.

        Can be awaited from any event loop; the request itself runs on the client's
        background loop.
        """
        return await on_bg_loop(self._fetch_task(uid))

    async def _fetch_task(self, uid: int) -> Task:
        try:
            response = await self._api.get_async(f"{self.endpoint}/{uid}")
        except ApiError as error:
            not_found = self._not_found(uid, error)
            if not_found is not None:
                raise not_found from error
            raise
        return self._parse_task(uid, self._json(uid, response))

    @staticmethod
    def _json(uid: int, response) -> Any:
        # requests and httpx both raise ValueError subclasses on undecodable bodies
        try:
            return response.json()
        except ValueError as exc:
            raise CommunicationError(
                f"Task {uid} response is not valid JSON", details={"uid": uid}, cause=exc
            ) from exc

    def get_tasks(
        self,
        *,
        limit: Optional[int] = None,
        from_: Optional[int] = None,
        reverse: Optional[bool] = None,
        **filters: Any,
    ) -> TasksResults:
        """
        Get one page of tasks, most recent first.

        Filters: ``uids``, ``statuses``, ``types``, ``index_uids``, ``canceled_by``,
        ``before_enqueued_at``, ``after_enqueued_at``, ``before_finished_at``,
        ``after_finished_at``.
        """
        params: Dict[str, Any] = {
            "limit": limit,
            "from": from_,
            "reverse": None if reverse is None else str(reverse).lower(),
            **_tasks_filter(**filters),
        }
        response = self._api.get(self.endpoint, params=params)
        return TasksResults.model_validate(response.json())

    def iter_tasks(self, *, page_size: int = 20, **filters: Any) -> Generator[Task, None, None]:
        """Iterate over every task matching ``filters``, fetching pages lazily."""
        from_: Optional[int] = None
        while True:
            page = self.get_tasks(limit=page_size, from_=from_, **filters)
            yield from page.results
            if page.next is None:
                break
            from_ = page.next

    # --- Cancelation / deletion -----------------------------------
    def cancel_tasks(self, **filters: Any) -> EnqueuedTask:
        """Cancel enqueued or processing tasks matching ``filters`` (at least one)."""
        params = self._required_filter(filters)
        return self._enqueued(self._api.post(f"{self.endpoint}/cancel", params=params))

    def delete_tasks(self, **filters: Any) -> EnqueuedTask:
        """Delete finished tasks matching ``filters`` (at least one)."""
        params = self._required_filter(filters)
        return self._enqueued(self._api.delete(self.endpoint, params=params))

    @staticmethod
    def _required_filter(filters: Dict[str, Any]) -> Dict[str, Optional[str]]:
        params = _tasks_filter(**filters)
        if all(value is None for value in params.values()):
            raise ValueError("At least one task filter is required.")
        return params

    # --- Waiting --------------------------------------------------
    @sync_compatible
    async def wait_for_task(
        self,
        task: TaskUidOrEnqueuedTask,
        options: Optional[WaitOptions] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Task:
        """
        Wait for an enqueued task to be processed. This is done through polling
        with :meth:`get_task_async`.

        :param task: Task uid or the :class:`EnqueuedTask` returned by a mutating call.
        :param options: Polling policy; unset fields fall back to the client defaults.
        :param timeout: Shorthand for ``options.timeout``.
        :param interval: Shorthand for ``options.interval``.
        :param cancel_token: Token that stops the wait with :class:`WaitCanceledError`.
        :raises TaskTimeoutError: the task was still pending when the timeout elapsed.
        """
        resolved = self._waiter.resolve_options(options, timeout=timeout, interval=interval)
        return await self._waiter.wait_for_task(task, resolved, cancel_token)

    @sync_compatible
    async def wait_for_tasks(
        self,
        tasks: TaskHandles,
        options: Optional[WaitOptions] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> List[Task]:
        """
        Wait for multiple enqueued tasks to be processed, one after another.

        ``timeout`` is the maximum time to wait for any one task, not for all of them.
        Results keep the input order. The first failure is raised and no result is
        returned.
        """
        resolved = self._waiter.resolve_options(options, timeout=timeout, interval=interval)
        return await self._waiter.wait_for_tasks(tasks, resolved, cancel_token)

    @sync_compatible_generator
    async def wait_for_tasks_iter(
        self,
        tasks: TaskHandles,
        options: Optional[WaitOptions] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[Task]:
        """
        Lazily wait for multiple enqueued tasks, yielding each one as soon as it is
        resolved. Same ordering, timeout and failure rules as :meth:`wait_for_tasks`.
        """
        resolved = self._waiter.resolve_options(options, timeout=timeout, interval=interval)
        async for task in self._waiter.wait_for_tasks_iter(tasks, resolved, cancel_token):
            yield task
