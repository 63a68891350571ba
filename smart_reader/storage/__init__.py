"""Storage - key-value persistence backends"""
from .kv_store import InMemoryKeyValueStore, KeyValueStore, SqliteKeyValueStore

__all__ = ["KeyValueStore", "SqliteKeyValueStore", "InMemoryKeyValueStore"]
