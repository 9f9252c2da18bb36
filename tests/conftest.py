import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
import requests

from meilipoll.api.api import Api
from meilipoll.dto.task import Task, TaskStatus
from meilipoll.errors import TaskNotFoundError

SERVER_ADDRESS = "http://localhost:7700"

E, P, S, F, C = (
    TaskStatus.ENQUEUED,
    TaskStatus.PROCESSING,
    TaskStatus.SUCCEEDED,
    TaskStatus.FAILED,
    TaskStatus.CANCELED,
)


def task_payload(uid: int, status: TaskStatus, **extra: Any) -> Dict[str, Any]:
    payload = {
        "uid": uid,
        "indexUid": "movies",
        "status": status.value,
        "type": "documentAdditionOrUpdate",
        "enqueuedAt": "2024-01-01T00:00:00Z",
        "startedAt": None if status == E else "2024-01-01T00:00:01Z",
        "finishedAt": "2024-01-01T00:00:02Z" if status.is_terminal else None,
    }
    payload.update(extra)
    return payload


def make_task(uid: int, status: TaskStatus) -> Task:
    return Task(
        uid=uid,
        index_uid="movies",
        status=status,
        type="documentAdditionOrUpdate",
        enqueued_at=datetime.now(timezone.utc),
    )


class ScriptedFetcher:
    """
    Replays a list of statuses per uid; the last status repeats forever.
    Unknown uids raise TaskNotFoundError.
    """

    def __init__(self, scripts: Dict[int, List[TaskStatus]]):
        self.scripts = scripts
        self.calls: List[int] = []

    def count(self, uid: int) -> int:
        return self.calls.count(uid)

    async def __call__(self, uid: int) -> Task:
        if uid not in self.scripts:
            raise TaskNotFoundError(uid)
        idx = self.count(uid)
        self.calls.append(uid)
        script = self.scripts[uid]
        return make_task(uid, script[min(idx, len(script) - 1)])


def make_response(
    status_code: int = 200,
    body: Any = None,
    url: str = SERVER_ADDRESS,
    reason: Optional[str] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.url = url
    response.reason = reason or ("OK" if status_code < 400 else "Error")
    return response


def enqueued_payload(uid: int, type: str = "documentAdditionOrUpdate") -> Dict[str, Any]:
    return {
        "taskUid": uid,
        "indexUid": "movies",
        "status": "enqueued",
        "type": type,
        "enqueuedAt": "2024-01-01T00:00:00Z",
    }


class ServerTasks:
    """In-memory /tasks/{uid} endpoint for httpx.MockTransport."""

    def __init__(self, scripts: Dict[int, List[TaskStatus]]):
        self.scripts = scripts
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        uid = int(request.url.path.rsplit("/", 1)[-1])
        if uid not in self.scripts:
            return httpx.Response(
                404,
                json={
                    "message": f"Task `{uid}` not found.",
                    "code": "task_not_found",
                    "type": "invalid_request",
                    "link": "https://docs.meilisearch.com/errors#task_not_found",
                },
            )
        seen = sum(1 for r in self.requests if r.url.path == request.url.path) - 1
        script = self.scripts[uid]
        return httpx.Response(200, json=task_payload(uid, script[min(seen, len(script) - 1)]))

    def polls(self, uid: int) -> int:
        return sum(1 for r in self.requests if r.url.path == f"/tasks/{uid}")


@pytest.fixture
def make_api():
    def _make_api(handler=None, **kwargs) -> Api:
        transport = httpx.MockTransport(handler) if handler is not None else None
        kwargs.setdefault("retry_sleep_sec", 0)
        return Api(
            server_address=SERVER_ADDRESS, api_key="masterKey", transport=transport, **kwargs
        )

    return _make_api
