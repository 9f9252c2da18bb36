"""
Tests for TaskApi against a mocked server.
"""

import asyncio
from unittest import mock

import httpx
import pytest
from conftest import E, P, S, ServerTasks, enqueued_payload, make_response, task_payload

from meilipoll.dto.task import EnqueuedTask, TaskStatus
from meilipoll.dto.wait import WaitOptions
from meilipoll.errors import (
    ApiError,
    CommunicationError,
    TaskNotFoundError,
    TaskTimeoutError,
    WaitCanceledError,
)
from meilipoll.io.cancel import CancelToken

# --- Fetcher ------------------------------------------------------


def test_get_task_async_parses_task(make_api):
    server = ServerTasks({3: [S]})
    api = make_api(server.handler)

    task = asyncio.run(api.tasks.get_task_async(3))

    assert task.uid == 3
    assert task.status == TaskStatus.SUCCEEDED
    request = server.requests[0]
    assert request.url.path == "/tasks/3"
    assert request.headers["Authorization"] == "Bearer masterKey"
    assert "Meilipoll Python" in request.headers["X-Meilisearch-Client"]


def test_get_task_async_not_found(make_api):
    api = make_api(ServerTasks({}).handler)

    with pytest.raises(TaskNotFoundError) as exc_info:
        asyncio.run(api.tasks.get_task_async(99))

    assert exc_info.value.uid == 99
    assert exc_info.value.http_status == 404
    assert exc_info.value.code == "task_not_found"


def test_get_task_async_unreachable_host(make_api):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    api = make_api(handler, retry_count=2)

    with pytest.raises(CommunicationError) as exc_info:
        asyncio.run(api.tasks.get_task_async(1))

    assert isinstance(exc_info.value.cause, httpx.ConnectError)
    assert len(calls) == 2


def test_get_task_async_malformed_payload(make_api):
    api = make_api(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(CommunicationError):
        asyncio.run(api.tasks.get_task_async(1))


def test_get_task_async_non_json_error_is_communication_error(make_api):
    api = make_api(
        lambda request: httpx.Response(502, text="<html>Bad gateway</html>"), retry_count=1
    )
    with pytest.raises(CommunicationError) as exc_info:
        asyncio.run(api.tasks.get_task_async(1))
    assert exc_info.value.details["http_status"] == 502


def test_get_task_async_api_error_is_not_retried(make_api):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(
            401, json={"message": "The provided API key is invalid.", "code": "invalid_api_key"}
        )

    api = make_api(handler, retry_count=3)
    with pytest.raises(ApiError) as exc_info:
        asyncio.run(api.tasks.get_task_async(1))

    assert not isinstance(exc_info.value, TaskNotFoundError)
    assert exc_info.value.code == "invalid_api_key"
    assert len(calls) == 1


# --- Waiting ------------------------------------------------------


def test_wait_for_task_from_sync_code(make_api):
    server = ServerTasks({1: [E, P, S]})
    api = make_api(server.handler)

    task = api.tasks.wait_for_task(1, timeout=1, interval=0.01)

    assert task.status == TaskStatus.SUCCEEDED
    assert server.polls(1) == 3


def test_wait_for_task_inside_event_loop(make_api):
    server = ServerTasks({1: [P, S]})
    api = make_api(server.handler)

    async def run():
        return await api.tasks.wait_for_task(1, WaitOptions(interval=0))

    assert asyncio.run(run()).status == TaskStatus.SUCCEEDED


def test_wait_for_task_timeout(make_api):
    api = make_api(ServerTasks({1: [E]}).handler)
    with pytest.raises(TaskTimeoutError) as exc_info:
        api.tasks.wait_for_task(1, timeout=0.05, interval=0.01)
    assert exc_info.value.uid == 1


def test_wait_for_task_not_found(make_api):
    api = make_api(ServerTasks({}).handler)
    with pytest.raises(TaskNotFoundError):
        api.tasks.wait_for_task(5)


def test_client_default_wait_options(make_api):
    api = make_api(
        ServerTasks({1: [E]}).handler, wait_options=WaitOptions(timeout=0.03, interval=0.01)
    )
    assert api.tasks.default_wait_options.timeout == 0.03
    with pytest.raises(TaskTimeoutError):
        api.tasks.wait_for_task(1)


def test_wait_for_task_cancel_from_sync_code(make_api):
    import threading

    api = make_api(ServerTasks({1: [E]}).handler)
    token = CancelToken()
    threading.Timer(0.05, token.cancel).start()

    with pytest.raises(WaitCanceledError):
        api.tasks.wait_for_task(1, interval=10, cancel_token=token)


def test_wait_for_tasks(make_api):
    server = ServerTasks({1: [P, S], 2: [S], 3: [E, S]})
    api = make_api(server.handler)

    tasks = api.tasks.wait_for_tasks([1, 2, 3], interval=0)

    assert [t.uid for t in tasks] == [1, 2, 3]


def test_wait_for_tasks_second_never_completes(make_api):
    server = ServerTasks({1: [S], 2: [E], 3: [S]})
    api = make_api(server.handler)

    with pytest.raises(TaskTimeoutError) as exc_info:
        api.tasks.wait_for_tasks([1, 2, 3], timeout=0.05)

    assert exc_info.value.uid == 2
    assert server.polls(3) == 0


def test_wait_for_tasks_iter_sync(make_api):
    server = ServerTasks({1: [S], 2: [P, S]})
    api = make_api(server.handler)
    seen = []

    for task in api.tasks.wait_for_tasks_iter([1, 2], interval=0):
        seen.append((task.uid, server.polls(2)))

    assert seen == [(1, 0), (2, 2)]


def test_wait_for_tasks_iter_async(make_api):
    server = ServerTasks({1: [S], 2: [S]})
    api = make_api(server.handler)

    async def run():
        return [task.uid async for task in api.tasks.wait_for_tasks_iter([1, 2])]

    assert asyncio.run(run()) == [1, 2]


def test_wait_for_tasks_iter_sync_early_exit(make_api):
    server = ServerTasks({1: [S], 2: [S]})
    api = make_api(server.handler)

    iterator = api.tasks.wait_for_tasks_iter([1, 2])
    assert next(iterator).uid == 1
    iterator.close()

    assert server.polls(2) == 0


def test_enqueued_task_wait_task(make_api):
    server = ServerTasks({8: [P, S]})
    api = make_api(server.handler)

    with mock.patch(
        "meilipoll.api._api.requests.request",
        return_value=make_response(202, enqueued_payload(8, "indexCreation")),
    ):
        handle = api.indexes.create("movies", primary_key="id")

    assert isinstance(handle, EnqueuedTask)
    task = handle.wait_task(interval=0)
    assert task.uid == 8
    assert task.status == TaskStatus.SUCCEEDED


# --- Listing, cancelation, deletion ------------------------------


def test_get_task_sync(make_api):
    api = make_api()
    with mock.patch(
        "meilipoll.api._api.requests.request",
        return_value=make_response(200, task_payload(4, TaskStatus.PROCESSING)),
    ) as request:
        task = api.tasks.get_task(4)

    assert task.status == TaskStatus.PROCESSING
    assert request.call_args.args == ("GET", "http://localhost:7700/tasks/4")


def test_get_task_sync_not_found(make_api):
    api = make_api()
    body = {"message": "Task `4` not found.", "code": "task_not_found", "type": "invalid_request"}
    with mock.patch(
        "meilipoll.api._api.requests.request", return_value=make_response(404, body)
    ):
        with pytest.raises(TaskNotFoundError) as exc_info:
            api.tasks.get_task(4)
    assert exc_info.value.uid == 4


def test_get_tasks_builds_filters(make_api):
    api = make_api()
    body = {
        "results": [task_payload(2, TaskStatus.SUCCEEDED)],
        "total": 1,
        "limit": 10,
        "from": 2,
        "next": None,
    }
    with mock.patch(
        "meilipoll.api._api.requests.request", return_value=make_response(200, body)
    ) as request:
        page = api.tasks.get_tasks(
            limit=10, statuses=[TaskStatus.SUCCEEDED, "failed"], index_uids=["movies"]
        )

    assert [t.uid for t in page.results] == [2]
    params = request.call_args.kwargs["params"]
    assert params == {"limit": 10, "statuses": "succeeded,failed", "indexUids": "movies"}


def test_iter_tasks_follows_next(make_api):
    api = make_api()
    pages = [
        make_response(
            200, {"results": [task_payload(3, S), task_payload(2, S)], "from": 3, "next": 1}
        ),
        make_response(200, {"results": [task_payload(1, S)], "from": 1, "next": None}),
    ]
    with mock.patch("meilipoll.api._api.requests.request", side_effect=pages) as request:
        uids = [task.uid for task in api.tasks.iter_tasks(page_size=2)]

    assert uids == [3, 2, 1]
    assert request.call_args_list[1].kwargs["params"] == {"limit": 2, "from": 1}


def test_cancel_tasks_returns_bound_handle(make_api):
    api = make_api()
    with mock.patch(
        "meilipoll.api._api.requests.request",
        return_value=make_response(200, enqueued_payload(20, "taskCancelation")),
    ) as request:
        handle = api.tasks.cancel_tasks(uids=[1, 2])

    assert handle.task_uid == 20
    assert handle._task_api is api.tasks
    assert request.call_args.args == ("POST", "http://localhost:7700/tasks/cancel")
    assert request.call_args.kwargs["params"] == {"uids": "1,2"}


def test_cancel_and_delete_require_a_filter(make_api):
    api = make_api()
    with pytest.raises(ValueError):
        api.tasks.cancel_tasks()
    with pytest.raises(ValueError):
        api.tasks.delete_tasks()


def test_delete_tasks(make_api):
    api = make_api()
    with mock.patch(
        "meilipoll.api._api.requests.request",
        return_value=make_response(200, enqueued_payload(21, "taskDeletion")),
    ) as request:
        handle = api.tasks.delete_tasks(statuses=["succeeded"])

    assert handle.task_uid == 21
    assert request.call_args.args == ("DELETE", "http://localhost:7700/tasks")


# --- Caller-side event loops --------------------------------------


def _queued_uids(queue):
    async def uids():
        while True:
            uid = await queue.get()
            if uid is None:
                return
            yield uid

    return uids()


async def _produce(queue, uids):
    for uid in [*uids, None]:
        await queue.put(uid)
        await asyncio.sleep(0)


def test_wait_for_tasks_consumes_async_iterable_on_caller_loop(make_api):
    server = ServerTasks({1: [S], 2: [P, S]})
    api = make_api(server.handler)

    async def run():
        queue = asyncio.Queue()
        tasks, _ = await asyncio.wait_for(
            asyncio.gather(
                api.tasks.wait_for_tasks(_queued_uids(queue), interval=0),
                _produce(queue, [1, 2]),
            ),
            3,
        )
        return tasks

    assert [t.uid for t in asyncio.run(run())] == [1, 2]


def test_wait_for_tasks_iter_consumes_async_iterable_on_caller_loop(make_api):
    server = ServerTasks({1: [S], 2: [S]})
    api = make_api(server.handler)

    async def run():
        queue = asyncio.Queue()
        producer = asyncio.ensure_future(_produce(queue, [1, 2]))

        async def collect():
            return [t.uid async for t in api.tasks.wait_for_tasks_iter(_queued_uids(queue))]

        uids = await asyncio.wait_for(collect(), 3)
        await producer
        return uids

    assert asyncio.run(run()) == [1, 2]


def test_client_is_shared_between_sync_and_async_callers(make_api):
    server = ServerTasks({1: [S]})
    api = make_api(server.handler)

    assert api.tasks.wait_for_task(1).uid == 1
    assert asyncio.run(api.tasks.get_task_async(1)).uid == 1
    assert asyncio.run(api.tasks.get_task_async(1)).uid == 1
    assert server.polls(1) == 3


def test_enqueued_task_wait_task_async(make_api):
    server = ServerTasks({9: [E, S]})
    api = make_api(server.handler)

    with mock.patch(
        "meilipoll.api._api.requests.request",
        return_value=make_response(202, enqueued_payload(9)),
    ):
        handle = api.documents.add("movies", [{"id": 1}])

    task = asyncio.run(handle.wait_task_async(interval=0))

    assert task.uid == 9
    assert task.status == TaskStatus.SUCCEEDED
    assert server.polls(9) == 2


def test_get_task_sync_non_json_body(make_api):
    api = make_api()
    response = make_response(200)
    response._content = b"<html>maintenance</html>"
    with mock.patch("meilipoll.api._api.requests.request", return_value=response):
        with pytest.raises(CommunicationError) as exc_info:
            api.tasks.get_task(4)
    assert exc_info.value.details["uid"] == 4
