"""
Storage adapters for the document store and the local key-value store.

The Supabase adapter is imported lazily by callers so the offline and
demo paths never touch the supabase client.
"""

from reflect.storage.base import DocumentStore, KeyValueStore
from reflect.storage.local import JsonDocumentStore, JsonKeyValueStore
from reflect.storage.memory import InMemoryDocumentStore, InMemoryKeyValueStore

__all__ = [
    "DocumentStore",
    "KeyValueStore",
    "InMemoryDocumentStore",
    "InMemoryKeyValueStore",
    "JsonDocumentStore",
    "JsonKeyValueStore",
]
