"""
Storage ports — the document store and the local key-value store.

Reflect never owns a persistence engine. Everything it saves goes
through one of two small contracts:

- DocumentStore: per-user JSON documents addressed as
  "<collection>/<doc_id>" (sessions, mood logs, settings)
- KeyValueStore: device-local strings (PIN hash, daily quote cache,
  reminder timestamps)

Implementations: in-memory (demo mode, tests), JSON files under the
data directory (offline), and Supabase (remote).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


def split_path(path: str) -> tuple[str, str]:
    """Split "collection/doc_id" into its two parts."""
    collection, sep, doc_id = path.strip("/").partition("/")
    if not sep or not collection or not doc_id or "/" in doc_id:
        raise ValueError(f"Document path must be 'collection/doc_id': {path!r}")
    return collection, doc_id


def merge_documents(existing: Optional[dict], data: dict) -> dict:
    """Shallow merge used by set(..., merge=True)."""
    merged = dict(existing or {})
    merged.update(data)
    return merged


class DocumentStore(ABC):
    """Per-user document persistence."""

    user_id: str

    @abstractmethod
    def get(self, path: str) -> Optional[dict[str, Any]]:
        """Return the document at `path`, or None if it does not exist."""

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        """Create or replace (or shallow-merge) the document at `path`."""

    @abstractmethod
    def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a new document with a generated id and return the id."""

    @abstractmethod
    def list(
        self,
        collection: str,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Documents of a collection in insertion order (or reversed).
        Each returned dict carries its id under "id".
        """


class KeyValueStore(ABC):
    """Device-local string storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...
