from typing import List, Optional, cast

from meilipoll.api.module_api import DeletableModuleApi, RetrievableModuleApi
from meilipoll.dto.base import drop_none
from meilipoll.dto.index import IndexesResults, IndexInfo
from meilipoll.dto.task import EnqueuedTask


class IndexApi(RetrievableModuleApi, DeletableModuleApi):

    @staticmethod
    def _info_class() -> type[IndexInfo]:
        return IndexInfo

    @staticmethod
    def _results_class() -> type[IndexesResults]:
        return IndexesResults

    def _endpoint_prefix(self) -> str:
        return "indexes"

    # --- Creation -------------------------------------------------
    def create(self, uid: str, primary_key: Optional[str] = None) -> EnqueuedTask:
        data = drop_none({"uid": uid, "primaryKey": primary_key})
        return self._enqueued(self._api.post(self.endpoint, data=data))

    # --- Retrieval ------------------------------------------------
    def get_info_by_id(self, uid: str) -> Optional[IndexInfo]:
        return cast(Optional[IndexInfo], super().get_info_by_id(uid))

    def get_list(self) -> List[IndexInfo]:
        return [cast(IndexInfo, item) for item in super().get_list()]

    # --- Update ---------------------------------------------------
    def update(self, uid: str, primary_key: str) -> EnqueuedTask:
        method = f"{self.endpoint}/{uid}"
        return self._enqueued(self._api.patch(method, data={"primaryKey": primary_key}))

    # --- Deletion -------------------------------------------------
    def delete(self, uid: str) -> EnqueuedTask:
        return super().delete(uid)
