"""
Local JSON-file stores under the data directory.

Layout:
    <data_dir>/users/<user_id>/<collection>.json   one object per collection
    <data_dir>/local_storage.json                  key-value pairs

Used when no remote document store is configured (offline mode) and
always for the device-local key-value store.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Optional

from reflect.exceptions import StoreError
from reflect.storage.base import (
    DocumentStore,
    KeyValueStore,
    merge_documents,
    split_path,
)

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StoreError(
            f"Could not read {path.name}: {e}", operation="read", path=str(path)
        ) from e
    if not isinstance(data, dict):
        raise StoreError(
            f"{path.name} does not hold a JSON object",
            operation="read",
            path=str(path),
        )
    return data


def _write_json(path: Path, data: dict[str, Any]) -> None:
    """Write atomically: temp file in the same directory, then replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)
        os.replace(tmp, path)
    except OSError as e:
        raise StoreError(
            f"Could not write {path.name}: {e}", operation="write", path=str(path)
        ) from e


class JsonDocumentStore(DocumentStore):
    """DocumentStore persisted as one JSON file per collection."""

    def __init__(self, data_dir: str | Path, user_id: str):
        self.user_id = user_id
        self._root = Path(data_dir) / "users" / user_id

    def _file(self, collection: str) -> Path:
        return self._root / f"{collection}.json"

    def get(self, path: str) -> Optional[dict[str, Any]]:
        collection, doc_id = split_path(path)
        return _read_json(self._file(collection)).get(doc_id)

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        file = self._file(collection)
        docs = _read_json(file)
        docs[doc_id] = merge_documents(docs.get(doc_id), data) if merge else data
        _write_json(file, docs)

    def add(self, collection: str, data: dict[str, Any]) -> str:
        file = self._file(collection)
        docs = _read_json(file)
        doc_id = uuid.uuid4().hex
        docs[doc_id] = data
        _write_json(file, docs)
        logger.debug(
            "document_added",
            extra={"collection": collection, "doc_id": doc_id},
        )
        return doc_id

    def list(
        self,
        collection: str,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        docs = _read_json(self._file(collection))
        items = [{"id": doc_id, **doc} for doc_id, doc in docs.items()]
        if newest_first:
            items.reverse()
        return items[:limit] if limit is not None else items


class JsonKeyValueStore(KeyValueStore):
    """KeyValueStore persisted as a single JSON object."""

    FILENAME = "local_storage.json"

    def __init__(self, data_dir: str | Path):
        self._path = Path(data_dir) / self.FILENAME

    def get(self, key: str) -> Optional[str]:
        value = _read_json(self._path).get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = _read_json(self._path)
        data[key] = value
        _write_json(self._path, data)

    def remove(self, key: str) -> None:
        data = _read_json(self._path)
        if data.pop(key, None) is not None:
            _write_json(self._path, data)
