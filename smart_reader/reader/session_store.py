"""
Session Store - Durable reading state

The only reader and writer of durable state: display settings, per-document
scroll position and last page, the last opened document name, and the
document library itself.

Key layout (values are JSON):
    smart_reader.settings            DisplaySettings
    smart_reader.last_opened         document name (plain string)
    smart_reader.scroll.<key>        float
    smart_reader.page.<key>          int
    smart_reader.library             list of document ids, insertion order
    smart_reader.document.<id>       Document

Nothing raises past this boundary. Storage errors are logged and reads
come back as "absent"; unparseable values are logged as
PersistenceCorruption and also read as absent, so a bad blob can never
block startup.
"""

from __future__ import annotations

import json
import math
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from .models import DisplaySettings, Document
from ..core.errors import PersistenceCorruption
from ..observability.logging import get_logger
from ..observability.metrics import DOCUMENT_COUNT
from ..storage.kv_store import KeyValueStore

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_PREFIX = "smart_reader"
SETTINGS_KEY = f"{_PREFIX}.settings"
LAST_OPENED_KEY = f"{_PREFIX}.last_opened"
LIBRARY_KEY = f"{_PREFIX}.library"


def _scroll_key(document_key: str) -> str:
    return f"{_PREFIX}.scroll.{document_key}"


def _page_key(document_key: str) -> str:
    return f"{_PREFIX}.page.{document_key}"


def _document_key(doc_id: str) -> str:
    return f"{_PREFIX}.document.{doc_id}"


class SessionStore:
    """
    Typed, failure-absorbing facade over a KeyValueStore.

    Usage:
        store = SessionStore(SqliteKeyValueStore())
        settings = store.load_settings()
        store.save_scroll_position(doc.id, 1250.0)
    """

    def __init__(self, backend: KeyValueStore) -> None:
        self._backend = backend

    # ─── Display settings ───────────────────────────────────

    def load_settings(self) -> DisplaySettings:
        """Stored settings, or defaults when absent or corrupt."""
        stored = self._read_model(SETTINGS_KEY, DisplaySettings)
        return stored if stored is not None else DisplaySettings()

    def save_settings(self, settings: DisplaySettings) -> bool:
        return self._write(SETTINGS_KEY, settings.model_dump_json())

    # ─── Reading position ───────────────────────────────────

    def save_scroll_position(self, document_key: str, position: float) -> bool:
        try:
            position = float(position)
        except (TypeError, ValueError) as exc:
            logger.warning("session_store.invalid_scroll", key=document_key, error=str(exc))
            return False
        if not math.isfinite(position) or position < 0:
            position = 0.0
        return self._write(_scroll_key(document_key), json.dumps(position))

    def load_scroll_position(self, document_key: str) -> Optional[float]:
        value = self._read_json(_scroll_key(document_key))
        if (
            isinstance(value, (int, float))
            and not isinstance(value, bool)
            and math.isfinite(value)
            and value >= 0
        ):
            return float(value)
        if value is not None:
            self._report_corruption(_scroll_key(document_key), f"not a position: {value!r}")
        return None

    def save_last_read_page(self, document_key: str, page: int) -> bool:
        try:
            page = int(page)
        except (TypeError, ValueError, OverflowError) as exc:
            logger.warning("session_store.invalid_page", key=document_key, error=str(exc))
            return False
        return self._write(_page_key(document_key), json.dumps(max(1, page)))

    def load_last_read_page(self, document_key: str) -> Optional[int]:
        value = self._read_json(_page_key(document_key))
        if isinstance(value, int) and not isinstance(value, bool) and value >= 1:
            return value
        if value is not None:
            self._report_corruption(_page_key(document_key), f"not a page: {value!r}")
        return None

    def save_last_opened_name(self, name: str) -> bool:
        return self._write(LAST_OPENED_KEY, name)

    def load_last_opened_name(self) -> Optional[str]:
        return self._read(LAST_OPENED_KEY)

    # ─── Library ────────────────────────────────────────────

    def save_document(self, document: Document) -> bool:
        """
        Insert or replace a document and register it in the library.

        A new document whose library entry cannot be written is removed
        again, so a failed save leaves nothing behind.
        """
        if not self._write(_document_key(document.id), document.model_dump_json()):
            return False
        ids = self._library_ids()
        if document.id not in ids:
            ids.append(document.id)
            if not self._write(LIBRARY_KEY, json.dumps(ids)):
                self._delete(_document_key(document.id))
                return False
            DOCUMENT_COUNT.set(len(ids))
        return True

    def get_document(self, doc_id: str) -> Optional[Document]:
        return self._read_model(_document_key(doc_id), Document)

    def has_document(self, doc_id: str) -> bool:
        return doc_id in self._library_ids()

    def list_documents(self) -> list[Document]:
        """All readable documents, newest first. Corrupt entries are skipped."""
        documents = [
            doc for doc in (self.get_document(doc_id) for doc_id in self._library_ids())
            if doc is not None
        ]
        documents.sort(key=lambda doc: doc.date_added, reverse=True)
        return documents

    def delete_document(self, doc_id: str) -> bool:
        """
        Remove a document and its reading position.

        Read-only (preloaded) checks belong to the caller; the store only
        persists what it is told.
        """
        ids = self._library_ids()
        if doc_id not in ids:
            logger.debug("session_store.delete_document.not_found", doc_id=doc_id)
            return False
        ids.remove(doc_id)
        if not self._write(LIBRARY_KEY, json.dumps(ids)):
            return False
        for key in (_document_key(doc_id), _scroll_key(doc_id), _page_key(doc_id)):
            self._delete(key)
        DOCUMENT_COUNT.set(len(ids))
        logger.info("session_store.delete_document.complete", doc_id=doc_id)
        return True

    # ─── Private helpers ────────────────────────────────────

    def _library_ids(self) -> list[str]:
        value = self._read_json(LIBRARY_KEY)
        if value is None:
            return []
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(value)
        self._report_corruption(LIBRARY_KEY, "library index is not a list of ids")
        return []

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._backend.get(key)
        except Exception as exc:
            logger.error("session_store.read_failed", key=key, error=str(exc))
            return None

    def _write(self, key: str, value: str) -> bool:
        try:
            self._backend.set(key, value)
            return True
        except Exception as exc:
            logger.error("session_store.write_failed", key=key, error=str(exc))
            return False

    def _delete(self, key: str) -> None:
        try:
            self._backend.delete(key)
        except Exception as exc:
            logger.error("session_store.delete_failed", key=key, error=str(exc))

    def _read_json(self, key: str) -> Any:
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            self._report_corruption(key, str(exc))
            return None

    def _read_model(self, key: str, model: type[ModelT]) -> Optional[ModelT]:
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            self._report_corruption(key, str(exc))
            return None

    @staticmethod
    def _report_corruption(key: str, message: str) -> None:
        error = PersistenceCorruption(key, message)
        logger.warning("session_store.corrupt_value", key=key, error=str(error))
