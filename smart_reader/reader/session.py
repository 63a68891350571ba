"""
Reading Session - Composition root of the reading engine

Holds the open document, the current page, the active search and the
display settings, dispatches user intents to the components below, and
publishes one coherent SessionState to observers after every change.

Flow:
    add_document(bytes) -> LOADING -> DocumentExtractor -> Document
                        -> SessionStore.save_document -> open -> READY
                        (ExtractionError or failed save -> ERROR, nothing added)

    request_*()  -> TextViewManager (single-flight, persisted)
                 -> listener refreshes the open document if it matches

Playback is reset to Idle whenever the displayed text changes: another
document, another page, or another display mode.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .extractor import DocumentExtractor
from .models import (
    FONT_SIZE_STEP,
    ChapterIndexItem,
    DisplayMode,
    DisplaySettings,
    Document,
    SearchResult,
    TtsSessionState,
    Voice,
    clamp,
)
from .playback import PlaybackController, SpeechEngine, resolve_speech_engine
from .preloaded import seed_preloaded
from .search_index import SearchCursor, SearchIndex
from .session_store import SessionStore
from .text_views import TextViewManager
from ..core.errors import (
    ExtractionError,
    NoDocumentOpen,
    NoTranslationAvailable,
    PlaybackUnsupported,
    ReadOnlyDocumentError,
)
from ..llm.ai_service import AiCollaborator, AiService, ResearchResult
from ..observability.logging import get_logger
from ..observability.metrics import INGESTION_COUNT
from ..observability.tracing import get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    """Snapshot published to observers."""

    status: SessionStatus = SessionStatus.IDLE
    error: Optional[str] = None
    document: Optional[Document] = None
    current_page: int = 1
    search_term: str = ""
    search_results: tuple[SearchResult, ...] = field(default_factory=tuple)
    search_index: Optional[int] = None
    display_settings: DisplaySettings = field(default_factory=DisplaySettings)
    playback: TtsSessionState = field(default_factory=TtsSessionState)

    @property
    def is_loading(self) -> bool:
        return self.status is SessionStatus.LOADING

    @property
    def page_texts(self) -> tuple[str, ...]:
        return tuple(self.document.page_texts) if self.document else ()

    @property
    def page_count(self) -> int:
        return self.document.page_count if self.document else 0


StateObserver = Callable[[SessionState], None]


class ReadingSession:
    """
    One reader's session over a persisted library.

    Usage:
        session = ReadingSession(SessionStore(SqliteKeyValueStore()))
        await session.start()
        document = await session.add_document(pdf_bytes, "paper.pdf")
        session.search("entropy")
        session.next_result()
        translated = await session.request_translation()
        await session.close()
    """

    def __init__(
        self,
        store: SessionStore,
        extractor: Optional[DocumentExtractor] = None,
        ai: Optional[AiCollaborator] = None,
        speech_engine_factory: Optional[Callable[[], SpeechEngine]] = None,
        playback: Optional[PlaybackController] = None,
    ) -> None:
        self._store = store
        self._extractor = extractor or DocumentExtractor()
        self._ai: AiCollaborator = ai or AiService.from_settings()
        self._search_index = SearchIndex()
        self._cursor = SearchCursor()

        self._views = TextViewManager(self._ai, store)
        self._views.add_listener(self._on_document_updated)

        if playback is None:
            try:
                engine: Optional[SpeechEngine] = resolve_speech_engine(speech_engine_factory)
            except PlaybackUnsupported as exc:
                logger.info("reading_session.playback_disabled", reason=str(exc))
                engine = None
            playback = PlaybackController(engine)
        self._playback = playback
        self._playback.add_listener(lambda _snapshot: self._emit())

        self._settings = DisplaySettings()
        self._document: Optional[Document] = None
        self._current_page = 1
        self._search_term = ""
        self._status = SessionStatus.IDLE
        self._error: Optional[str] = None
        self._observers: list[StateObserver] = []

    # ─── Observation ────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return SessionState(
            status=self._status,
            error=self._error,
            document=self._document,
            current_page=self._current_page,
            search_term=self._search_term,
            search_results=self._cursor.results,
            search_index=self._cursor.index,
            display_settings=self._settings,
            playback=self._playback.snapshot(),
        )

    @property
    def document(self) -> Optional[Document]:
        return self._document

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def display_settings(self) -> DisplaySettings:
        return self._settings

    @property
    def playback(self) -> PlaybackController:
        return self._playback

    @property
    def displayed_text(self) -> str:
        """Current page in Original mode, the translation in Translated mode."""
        document = self._document
        if document is None:
            return ""
        if document.display_mode is DisplayMode.TRANSLATED:
            return document.translated_text or ""
        if document.page_texts:
            return document.page_texts[self._current_page - 1]
        return document.original_text

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ─── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        """Load settings, seed the catalog, start playback and reopen the last document."""
        self._settings = self._store.load_settings()
        seed_preloaded(self._store)
        self._playback.start()
        await self._playback.load_voices()

        last_opened = self._store.load_last_opened_name()
        if last_opened:
            for document in self._store.list_documents():
                if document.name == last_opened:
                    self._open(document)
                    break
        logger.info(
            "reading_session.started",
            reopened=self._document.id if self._document else None,
            playback_supported=self._playback.supported,
        )
        self._emit()

    async def close(self) -> None:
        await self._playback.close()
        logger.info("reading_session.closed")

    # ─── Library ────────────────────────────────────────────

    async def add_document(self, data: bytes, name: str) -> Optional[Document]:
        """
        Ingest raw document bytes and open the result.

        Returns:
            The new document, or None when extraction or saving failed (the
            session is then in ERROR with the reason, no document is loaded,
            and the library is unchanged).
        """
        self._status = SessionStatus.LOADING
        self._error = None
        self._emit()

        with tracer.start_as_current_span("reading_session.add_document") as span:
            span.set_attribute("reader.bytes", len(data))
            try:
                extracted = await self._extractor.extract(data)
            except ExtractionError as exc:
                self._ingestion_failed(name, str(exc))
                return None

            document = Document(
                name=name,
                original_text=extracted.full_text,
                page_texts=list(extracted.page_texts),
            )
            span.set_attribute("reader.doc_id", document.id)

            if not self._store.save_document(document):
                self._ingestion_failed(name, f"Could not save {name} to the library.")
                return None

        INGESTION_COUNT.labels(status="success").inc()
        logger.info(
            "reading_session.document_added",
            doc_id=document.id,
            name=name,
            page_count=document.page_count,
        )
        self._open(document)
        return document

    def list_documents(self) -> list[Document]:
        return self._store.list_documents()

    def open_document(self, doc_id: str) -> Optional[Document]:
        document = self._store.get_document(doc_id)
        if document is None:
            logger.warning("reading_session.open.not_found", doc_id=doc_id)
            self._fail(f"Document {doc_id} was not found.")
            return None
        self._open(document)
        return self._document

    def close_document(self) -> None:
        self._playback.stop()
        self._document = None
        self._current_page = 1
        self._reset_search()
        self._status = SessionStatus.IDLE
        self._error = None
        self._emit()

    def delete_document(self, doc_id: str) -> bool:
        """
        Delete a user document.

        Raises:
            ReadOnlyDocumentError: The document is preloaded.
        """
        document = self._store.get_document(doc_id)
        if document is not None and document.is_preloaded:
            raise ReadOnlyDocumentError(doc_id)

        deleted = self._store.delete_document(doc_id)
        if deleted and self._document is not None and self._document.id == doc_id:
            self.close_document()
        return deleted

    # ─── Reading position and display ───────────────────────

    def set_page(self, page: int) -> int:
        """Move to a page, clamped to [1, page_count]."""
        document = self._require_document("change page")
        target = int(clamp(page, 1, max(1, document.page_count)))
        if target == self._current_page:
            return target

        self._playback.stop()
        self._current_page = target
        self._document = document.with_changes(last_read_page=target)
        self._store.save_last_read_page(document.id, target)
        self._emit()
        return target

    def set_scroll_position(self, position: float) -> None:
        document = self._require_document("save the scroll position")
        self._document = document.with_changes(last_read_scroll_position=position)
        self._store.save_scroll_position(document.id, self._document.last_read_scroll_position)
        self._emit()

    def set_font_size(self, size: int) -> int:
        document = self._require_document("change the font size")
        self._document = document.with_changes(font_size=size)
        self._store.save_document(self._document)
        self._emit()
        return self._document.font_size

    def step_font_size(self, steps: int) -> int:
        """Grow or shrink the document font by whole FONT_SIZE_STEP increments."""
        document = self._require_document("change the font size")
        return self.set_font_size(document.font_size + steps * FONT_SIZE_STEP)

    def set_font_family(self, family: str) -> None:
        document = self._require_document("change the font family")
        self._document = document.with_changes(font_family=family)
        self._store.save_document(self._document)
        self._emit()

    def update_display_settings(self, **changes: Any) -> DisplaySettings:
        self._settings = self._settings.with_changes(**changes)
        self._store.save_settings(self._settings)
        self._emit()
        return self._settings

    # ─── Search ─────────────────────────────────────────────

    def search(self, term: str) -> list[SearchResult]:
        document = self._require_document("search")
        results = self._search_index.search(document.page_texts, term)
        self._search_term = term
        self._cursor.reset(results)
        self._emit()
        return results

    def next_result(self) -> Optional[SearchResult]:
        return self._move_to(self._cursor.next())

    def previous_result(self) -> Optional[SearchResult]:
        return self._move_to(self._cursor.previous())

    # ─── AI views ───────────────────────────────────────────

    async def request_translation(self) -> str:
        return await self._views.request_translation(self._require_document("translate"))

    async def request_summary(self) -> str:
        return await self._views.request_summary(self._require_document("summarize"))

    async def request_keywords(self) -> list[str]:
        return await self._views.request_keywords(self._require_document("extract keywords"))

    async def request_chapters(self) -> list[ChapterIndexItem]:
        return await self._views.request_chapters(self._require_document("index chapters"))

    def toggle_view(self) -> Document:
        """
        Switch between original and translated text.

        Raises:
            NoTranslationAvailable: Recorded as the session error, then re-raised.
        """
        document = self._require_document("toggle the view")
        try:
            updated = self._views.toggle_view(document)
        except NoTranslationAvailable as exc:
            self._error = str(exc)
            self._emit()
            raise
        self._on_document_updated(updated)
        return self._document

    async def research(self, query: str) -> ResearchResult:
        logger.info("reading_session.research", query_chars=len(query))
        return await self._ai.search(query)

    # ─── Playback ───────────────────────────────────────────

    def play(self) -> None:
        self._playback.play(self.displayed_text)

    def pause(self) -> None:
        self._playback.pause()

    def resume(self) -> None:
        self._playback.resume()

    def stop(self) -> None:
        self._playback.stop()

    def set_speed(self, speed: float) -> float:
        return self._playback.set_speed(speed)

    def step_speed(self, steps: int) -> float:
        return self._playback.step_speed(steps)

    def select_voice(self, name: str) -> Optional[Voice]:
        return self._playback.select_voice(name)

    # ─── Private helpers ────────────────────────────────────

    def _open(self, document: Document) -> None:
        self._playback.stop()

        page = self._store.load_last_read_page(document.id) or document.last_read_page
        page = int(clamp(page, 1, max(1, document.page_count)))
        scroll = self._store.load_scroll_position(document.id)
        changes: dict[str, Any] = {"last_read_page": page}
        if scroll is not None:
            changes["last_read_scroll_position"] = scroll

        self._document = document.with_changes(**changes)
        self._current_page = page
        self._reset_search()
        self._store.save_last_opened_name(document.name)
        self._status = SessionStatus.READY
        self._error = None
        logger.info("reading_session.document_opened", doc_id=document.id, page=page)
        self._emit()

    def _on_document_updated(self, updated: Document) -> None:
        """Refresh the open document when a result for it was applied."""
        current = self._document
        if current is None or current.id != updated.id:
            return
        if updated.display_mode is not current.display_mode:
            self._playback.stop()
        # Reading position is tracked here, not by whoever stored the update
        self._document = updated.with_changes(
            last_read_page=self._current_page,
            last_read_scroll_position=current.last_read_scroll_position,
        )
        self._emit()

    def _move_to(self, result: Optional[SearchResult]) -> Optional[SearchResult]:
        if result is not None:
            self.set_page(result.page)
        self._emit()
        return result

    def _reset_search(self) -> None:
        self._search_term = ""
        self._cursor.reset(())

    def _require_document(self, action: str) -> Document:
        if self._document is None:
            raise NoDocumentOpen(action)
        return self._document

    def _emit(self) -> None:
        if not self._observers:
            return
        state = self.state
        for observer in list(self._observers):
            observer(state)
