from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generator, List, Optional, Type, TypeVar

from pydantic import BaseModel

from meilipoll.dto.task import EnqueuedTask
from meilipoll.errors import ApiError

if TYPE_CHECKING:
    from meilipoll.api.api import Api


TInfo = TypeVar("TInfo", bound=BaseModel)


class ModuleApi:
    """Base class for concrete API clients."""

    def __init__(self, api: "Api"):
        self._api = api

    def _endpoint_prefix(self) -> str:
        raise NotImplementedError()

    @property
    def endpoint(self) -> str:
        return self._endpoint_prefix().rstrip("/")

    def _enqueued(self, response) -> EnqueuedTask:
        """Parse the summarized task of a mutating call and bind it to the task client."""
        return EnqueuedTask.model_validate(response.json()).bind(self._api.tasks)


class RetrievableModuleApi(ModuleApi):
    """Mixin with helpers for read operations."""

    @staticmethod
    def _info_class() -> Type[TInfo]:
        raise NotImplementedError()

    @staticmethod
    def _results_class() -> Type[TInfo]:
        raise NotImplementedError()

    def get_info_by_id(self, id: str) -> Optional[BaseModel]:
        try:
            response = self._api.get(f"{self.endpoint}/{id}")
        except ApiError as error:
            if error.http_status == 404:
                return None
            raise
        return self._info_class().model_validate(response.json())

    def list_page(
        self,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **filters: Any,
    ) -> BaseModel:
        params: Dict[str, Any] = {"limit": limit, "offset": offset, **filters}
        response = self._api.get(self.endpoint, params=params)
        return self._results_class().model_validate(response.json())

    def iter_list(self, *, page_size: int = 20, **filters: Any) -> Generator[BaseModel, None, None]:
        offset = 0
        while True:
            page = self.list_page(limit=page_size, offset=offset, **filters)
            yield from page.results
            offset += len(page.results)
            if not page.results or page.total is None or offset >= page.total:
                break

    def get_list(self, **filters: Any) -> List[BaseModel]:
        return list(self.iter_list(**filters))


class DeletableModuleApi(ModuleApi):
    """Mixin with helpers for delete operations."""

    def delete(self, id: str) -> EnqueuedTask:
        return self._enqueued(self._api.delete(f"{self.endpoint}/{id}"))
