"""In-memory stores for demo mode and tests."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Optional

from reflect.storage.base import (
    DocumentStore,
    KeyValueStore,
    merge_documents,
    split_path,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore. Nothing survives the process."""

    def __init__(self, user_id: str = "demo-user"):
        self.user_id = user_id
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def get(self, path: str) -> Optional[dict[str, Any]]:
        collection, doc_id = split_path(path)
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        docs = self._collections.setdefault(collection, {})
        if merge:
            data = merge_documents(docs.get(doc_id), data)
        docs[doc_id] = copy.deepcopy(data)

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        return doc_id

    def list(
        self,
        collection: str,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        items = [
            {"id": doc_id, **copy.deepcopy(doc)}
            for doc_id, doc in self._collections.get(collection, {}).items()
        ]
        if newest_first:
            items.reverse()
        return items[:limit] if limit is not None else items


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed KeyValueStore."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
