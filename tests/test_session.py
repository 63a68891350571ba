"""
Tests for Reading Session

Tests the composition root end to end with fakes:
- Ingestion success, extraction and save failures (no partial library entry)
- Search navigation moving the current page
- Translation/toggle scenario and displayed text
- Page clamping, persistence and playback reset
- Display settings persistence
- Preloaded documents seeded and protected from deletion
- Observers and unsubscribe
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from smart_reader.core.errors import (
    NoDocumentOpen,
    NoTranslationAvailable,
    ReadOnlyDocumentError,
)
from smart_reader.reader.extractor import DocumentExtractor
from smart_reader.reader.models import DARK_BACKGROUND_COLOR, DARK_MODE_TEXT_COLOR, DisplayMode
from smart_reader.reader.playback import PlaybackState
from smart_reader.reader.preloaded import WELCOME_DOCUMENT_ID
from smart_reader.reader.session import ReadingSession, SessionState, SessionStatus
from smart_reader.reader.session_store import LIBRARY_KEY, SessionStore
from smart_reader.storage.kv_store import InMemoryKeyValueStore

from conftest import FakeBackend, FakeSpeechEngine, make_ai


def _session(
    store: SessionStore,
    pages=("A A", "B", "A"),
    backend: FakeBackend = None,
    ai=None,
    engine: FakeSpeechEngine = None,
) -> ReadingSession:
    return ReadingSession(
        store,
        extractor=DocumentExtractor(backend or FakeBackend(pages)),
        ai=ai or make_ai("T"),
        speech_engine_factory=(lambda: engine) if engine is not None else None,
    )


# ──────────────────────────────────────────────────────────────
# Ingestion
# ──────────────────────────────────────────────────────────────


class TestIngestion:
    """Tests for add_document."""

    @pytest.mark.asyncio
    async def test_add_document(self, store: SessionStore) -> None:
        session = _session(store)
        statuses: list[SessionStatus] = []
        session.subscribe(lambda state: statuses.append(state.status))

        document = await session.add_document(b"%PDF", "three.pdf")

        assert document is not None
        assert document.display_mode is DisplayMode.ORIGINAL
        assert document.original_text == "A A\n\nB\n\nA"
        assert document.chapters == [] and document.translated_text is None
        assert store.has_document(document.id)
        assert session.state.status is SessionStatus.READY
        assert session.state.page_count == 3
        assert statuses[0] is SessionStatus.LOADING
        assert statuses[-1] is SessionStatus.READY
        assert store.load_last_opened_name() == "three.pdf"

    @pytest.mark.asyncio
    async def test_failed_ingestion_adds_nothing(self, store: SessionStore) -> None:
        """Test a failed extraction reports the reason and leaves the library unchanged."""
        session = _session(store, backend=FakeBackend(["a", "b"], fail_on_page=2))

        assert await session.add_document(b"%PDF", "bad.pdf") is None

        assert session.state.status is SessionStatus.ERROR
        assert "Page 2" in session.state.error
        assert store.list_documents() == []
        assert session.document is None

    @pytest.mark.asyncio
    async def test_failed_save_adds_nothing(self) -> None:
        """Test a document that cannot be saved is reported and leaves no data behind."""
        backend = InMemoryKeyValueStore()
        backend.set = MagicMock(side_effect=OSError("disk full"))
        store = SessionStore(backend)
        session = _session(store)

        assert await session.add_document(b"%PDF", "three.pdf") is None

        assert session.state.status is SessionStatus.ERROR
        assert "three.pdf" in session.state.error
        assert session.document is None
        assert store.list_documents() == []

    @pytest.mark.asyncio
    async def test_failed_library_update_rolls_back(self) -> None:
        """Test a saved document body is removed when the library entry cannot be written."""
        backend = InMemoryKeyValueStore()
        write = backend.set

        def set_value(key: str, value: str) -> None:
            if key == LIBRARY_KEY:
                raise OSError("disk full")
            write(key, value)

        backend.set = set_value
        session = _session(SessionStore(backend))

        assert await session.add_document(b"%PDF", "three.pdf") is None
        assert session.state.status is SessionStatus.ERROR
        assert not any(key.startswith("smart_reader.document.") for key in backend._data)

    @pytest.mark.asyncio
    async def test_unexpected_backend_error_ends_in_error(self, store: SessionStore) -> None:
        """Test ingestion never stays in LOADING when the backend fails unexpectedly."""
        backend = FakeBackend(["a"])
        backend.page_count = MagicMock(side_effect=RuntimeError("document closed"))
        session = _session(store, backend=backend)

        assert await session.add_document(b"%PDF", "bad.pdf") is None
        assert session.state.status is SessionStatus.ERROR
        assert "document closed" in session.state.error
        assert store.list_documents() == []


# ──────────────────────────────────────────────────────────────
# Search and pages
# ──────────────────────────────────────────────────────────────


class TestSearchAndPages:
    """Tests for search navigation and page handling."""

    @pytest.mark.asyncio
    async def test_search_navigation_scenario(self, store: SessionStore) -> None:
        """Test next from no selection visits page 1, then 3, then wraps to 1."""
        session = _session(store)
        await session.add_document(b"%PDF", "three.pdf")

        results = session.search("A")
        assert [(r.page, r.count) for r in results] == [(1, 2), (3, 1)]
        assert session.state.search_index is None

        pages = []
        for _ in range(3):
            session.next_result()
            pages.append(session.current_page)
        assert pages == [1, 3, 1]

        session.previous_result()
        assert session.current_page == 3

    @pytest.mark.asyncio
    async def test_blank_search_clears_results(self, store: SessionStore) -> None:
        session = _session(store)
        await session.add_document(b"%PDF", "three.pdf")
        session.search("A")
        assert session.search("  ") == []
        assert session.next_result() is None

    @pytest.mark.asyncio
    async def test_set_page_clamps_and_persists(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")

        assert session.set_page(10) == 3
        assert session.set_page(-2) == 1
        session.set_page(2)
        assert store.load_last_read_page(document.id) == 2
        assert session.displayed_text == "B"

    @pytest.mark.asyncio
    async def test_page_change_stops_playback(self, store: SessionStore) -> None:
        engine = FakeSpeechEngine()
        session = _session(store, engine=engine)
        await session.add_document(b"%PDF", "three.pdf")

        session.play()
        assert engine.spoken[-1][0] == "A A"
        assert session.playback.state is PlaybackState.PLAYING
        session.set_page(2)
        assert session.playback.state is PlaybackState.IDLE

    @pytest.mark.asyncio
    async def test_reopen_restores_position(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")
        session.set_page(3)
        session.set_scroll_position(880.0)
        session.close_document()
        assert session.state.status is SessionStatus.IDLE

        reopened = session.open_document(document.id)
        assert session.current_page == 3
        assert reopened.last_read_scroll_position == 880.0

    @pytest.mark.asyncio
    async def test_non_finite_scroll_position(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")
        session.set_scroll_position(float("nan"))
        assert session.document.last_read_scroll_position == 0.0
        assert store.load_scroll_position(document.id) == 0.0

    def test_actions_need_a_document(self, store: SessionStore) -> None:
        session = _session(store)
        with pytest.raises(NoDocumentOpen):
            session.search("x")
        assert session.displayed_text == ""

    @pytest.mark.asyncio
    async def test_open_missing_document(self, store: SessionStore) -> None:
        """Test a missing document reports an error and unloads the open one."""
        engine = FakeSpeechEngine()
        session = _session(store, engine=engine)
        await session.add_document(b"%PDF", "three.pdf")
        session.play()

        assert session.open_document("missing") is None
        state = session.state
        assert state.status is SessionStatus.ERROR
        assert "missing" in state.error
        assert state.document is None
        assert state.page_count == 0
        assert session.playback.state is PlaybackState.IDLE


# ──────────────────────────────────────────────────────────────
# Text views through the session
# ──────────────────────────────────────────────────────────────


class TestTextViews:
    """Tests for AI requests and the display toggle."""

    @pytest.mark.asyncio
    async def test_translation_toggle_scenario(self, store: SessionStore) -> None:
        """Test toggle fails, translation switches to translated, toggle switches back."""
        session = _session(store)
        await session.add_document(b"%PDF", "three.pdf")

        with pytest.raises(NoTranslationAvailable):
            session.toggle_view()
        assert session.document.display_mode is DisplayMode.ORIGINAL
        assert session.state.error is not None

        assert await session.request_translation() == "T"
        assert session.document.display_mode is DisplayMode.TRANSLATED
        assert session.displayed_text == "T"

        session.toggle_view()
        assert session.document.display_mode is DisplayMode.ORIGINAL
        assert session.displayed_text == "A A"

    @pytest.mark.asyncio
    async def test_mode_change_stops_playback(self, store: SessionStore) -> None:
        engine = FakeSpeechEngine()
        session = _session(store, engine=engine)
        await session.add_document(b"%PDF", "three.pdf")
        session.play()
        await session.request_translation()
        assert session.playback.state is PlaybackState.IDLE

    @pytest.mark.asyncio
    async def test_summary_keywords_and_research(self, store: SessionStore) -> None:
        ai = make_ai()
        session = _session(store, ai=ai)
        await session.add_document(b"%PDF", "three.pdf")

        assert await session.request_summary() == "a summary"
        assert await session.request_keywords() == ["alpha", "beta"]
        assert session.document.summary == "a summary"
        assert (await session.research("topic")).text == "findings"
        ai.search.assert_awaited_once_with("topic")

    @pytest.mark.asyncio
    async def test_result_after_navigation_persists(self, store: SessionStore) -> None:
        """Test a result for a document that is no longer open still lands in the store."""
        gate = asyncio.Event()
        ai = make_ai()

        async def summarize(text: str) -> str:
            await gate.wait()
            return "a summary"

        ai.summarize = AsyncMock(side_effect=summarize)
        session = _session(store, ai=ai)
        first = await session.add_document(b"%PDF", "first.pdf")
        second = await session.add_document(b"%PDF", "second.pdf")

        session.open_document(first.id)
        pending = asyncio.create_task(session.request_summary())
        await asyncio.sleep(0)
        session.open_document(second.id)
        gate.set()
        assert await pending == "a summary"

        assert store.get_document(first.id).summary == "a summary"
        assert session.document.name == "second.pdf"
        assert session.document.summary is None


# ──────────────────────────────────────────────────────────────
# Settings, library and lifecycle
# ──────────────────────────────────────────────────────────────


class TestLifecycle:
    """Tests for start, settings, deletion and observers."""

    @pytest.mark.asyncio
    async def test_start_seeds_preloaded(self, store: SessionStore) -> None:
        session = _session(store)
        await session.start()
        try:
            preloaded = store.get_document(WELCOME_DOCUMENT_ID)
            assert preloaded.is_preloaded
            with pytest.raises(ReadOnlyDocumentError):
                session.delete_document(WELCOME_DOCUMENT_ID)
            assert store.has_document(WELCOME_DOCUMENT_ID)
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_start_reopens_last_document(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")
        session.set_page(2)

        restarted = _session(store)
        await restarted.start()
        try:
            assert restarted.document.id == document.id
            assert restarted.current_page == 2
        finally:
            await restarted.close()

    @pytest.mark.asyncio
    async def test_delete_open_document(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")
        assert session.delete_document(document.id) is True
        assert session.document is None
        assert not store.has_document(document.id)

    def test_display_settings_persisted(self, store: SessionStore) -> None:
        session = _session(store)
        updated = session.update_display_settings(background_color=DARK_BACKGROUND_COLOR)
        assert updated.text_color == DARK_MODE_TEXT_COLOR
        assert store.load_settings() == updated

    @pytest.mark.asyncio
    async def test_font_settings_persisted(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")
        assert session.set_font_size(60) == 36
        session.set_font_family("font-amiri")
        saved = store.get_document(document.id)
        assert (saved.font_size, saved.font_family) == (36, "font-amiri")

    @pytest.mark.asyncio
    async def test_font_size_steps(self, store: SessionStore) -> None:
        session = _session(store)
        document = await session.add_document(b"%PDF", "three.pdf")
        assert session.step_font_size(1) == document.font_size + 2
        assert session.step_font_size(-2) == document.font_size - 2
        assert session.step_font_size(100) == 36
        assert store.get_document(document.id).font_size == 36
        assert session.step_speed(2) == 1.2

    def test_unsubscribe(self, store: SessionStore) -> None:
        session = _session(store)
        states: list[SessionState] = []
        unsubscribe = session.subscribe(states.append)
        session.update_display_settings(font_size_percent=120)
        unsubscribe()
        session.update_display_settings(font_size_percent=140)
        assert len(states) == 1
        assert states[0].display_settings.font_size_percent == 120

    def test_playback_disabled_without_engine(self, store: SessionStore) -> None:
        session = _session(store)
        assert session.state.playback.supported is False
