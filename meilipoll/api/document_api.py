from typing import Any, Dict, List, Optional, Union

from meilipoll.api.module_api import ModuleApi
from meilipoll.dto.task import EnqueuedTask

DocumentId = Union[str, int]


class DocumentApi(ModuleApi):
    """Document writes of one index. Every call returns the task doing the work."""

    def _endpoint_prefix(self) -> str:
        return "indexes"

    def _documents_endpoint(self, index_uid: str) -> str:
        return f"{self.endpoint}/{index_uid}/documents"

    def add(
        self,
        index_uid: str,
        documents: List[Dict[str, Any]],
        primary_key: Optional[str] = None,
    ) -> EnqueuedTask:
        """Add documents, replacing existing documents with the same id."""
        method = self._documents_endpoint(index_uid)
        params = {"primaryKey": primary_key}
        return self._enqueued(self._api.post(method, data=documents, params=params))

    def add_in_batches(
        self,
        index_uid: str,
        documents: List[Dict[str, Any]],
        batch_size: int = 1000,
        primary_key: Optional[str] = None,
    ) -> List[EnqueuedTask]:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        return [
            self.add(index_uid, documents[i : i + batch_size], primary_key=primary_key)
            for i in range(0, len(documents), batch_size)
        ]

    def update(
        self,
        index_uid: str,
        documents: List[Dict[str, Any]],
        primary_key: Optional[str] = None,
    ) -> EnqueuedTask:
        """Add documents, merging fields into existing documents with the same id."""
        method = self._documents_endpoint(index_uid)
        params = {"primaryKey": primary_key}
        return self._enqueued(self._api.put(method, data=documents, params=params))

    def delete(self, index_uid: str, document_id: DocumentId) -> EnqueuedTask:
        method = f"{self._documents_endpoint(index_uid)}/{document_id}"
        return self._enqueued(self._api.delete(method))

    def delete_batch(self, index_uid: str, document_ids: List[DocumentId]) -> EnqueuedTask:
        method = f"{self._documents_endpoint(index_uid)}/delete-batch"
        return self._enqueued(self._api.post(method, data=list(document_ids)))

    def delete_all(self, index_uid: str) -> EnqueuedTask:
        return self._enqueued(self._api.delete(self._documents_endpoint(index_uid)))
