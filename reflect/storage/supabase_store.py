"""
Supabase-backed document store.

All of a user's documents live in one table, keyed by
(user_id, collection, doc_id) with the payload in a jsonb column:

    create table reflect_documents (
        user_id    text not null,
        collection text not null,
        doc_id     text not null,
        data       jsonb not null,
        created_at timestamptz not null default now(),
        primary key (user_id, collection, doc_id)
    );

Every query is scoped to the signed-in user in application code as
well as by row-level security.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from supabase import Client, create_client

from reflect.exceptions import StoreError
from reflect.storage.base import DocumentStore, merge_documents, split_path

logger = logging.getLogger(__name__)

TABLE = "reflect_documents"


def supabase_configured() -> bool:
    """True when SUPABASE_URL and SUPABASE_SERVICE_KEY are both set."""
    return bool(
        os.environ.get("SUPABASE_URL", "").strip()
        and os.environ.get("SUPABASE_SERVICE_KEY", "").strip()
    )


class SupabaseDocumentStore(DocumentStore):
    """DocumentStore on a Supabase (Postgres) table."""

    def __init__(self, user_id: str, client: Optional[Client] = None):
        if client is None:
            url = os.environ.get("SUPABASE_URL")
            key = os.environ.get("SUPABASE_SERVICE_KEY")
            if not url or not key:
                raise EnvironmentError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set"
                )
            client = create_client(url, key)
        self.client = client
        self.user_id = user_id

    def _execute(self, query: Any, operation: str, path: str) -> list[dict]:
        try:
            return query.execute().data or []
        except Exception as e:
            raise StoreError(
                f"Supabase {operation} failed for {path}: {e}",
                operation=operation,
                path=path,
            ) from e

    def _scoped(self, collection: str) -> Any:
        return (
            self.client.table(TABLE)
            .select("doc_id, data")
            .eq("user_id", self.user_id)
            .eq("collection", collection)
        )

    def get(self, path: str) -> Optional[dict[str, Any]]:
        collection, doc_id = split_path(path)
        rows = self._execute(
            self._scoped(collection).eq("doc_id", doc_id).limit(1), "get", path
        )
        return rows[0]["data"] if rows else None

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        if merge:
            data = merge_documents(self.get(path), data)
        row = {
            "user_id": self.user_id,
            "collection": collection,
            "doc_id": doc_id,
            "data": data,
        }
        self._execute(
            self.client.table(TABLE).upsert(
                row, on_conflict="user_id,collection,doc_id"
            ),
            "set",
            path,
        )

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        row = {
            "user_id": self.user_id,
            "collection": collection,
            "doc_id": doc_id,
            "data": data,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._execute(
            self.client.table(TABLE).insert(row), "add", f"{collection}/{doc_id}"
        )
        return doc_id

    def list(
        self,
        collection: str,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        query = self._scoped(collection).order("created_at", desc=newest_first)
        if limit is not None:
            query = query.limit(limit)
        rows = self._execute(query, "list", collection)
        return [{"id": r["doc_id"], **(r.get("data") or {})} for r in rows]
