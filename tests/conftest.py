"""
Shared fakes for the reading session tests.

- FakeBackend: scripted RenderingBackend
- FakeSpeechEngine: poll-only speech engine with inspectable calls
- FakeClock: manually advanced monotonic clock
"""

from typing import Callable, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from smart_reader.core.errors import LoadError, PageError
from smart_reader.llm.ai_service import ResearchResult
from smart_reader.reader.chapters import ChapterIndexResult
from smart_reader.reader.models import Document, Voice
from smart_reader.reader.session_store import SessionStore
from smart_reader.storage.kv_store import InMemoryKeyValueStore


class FakeBackend:
    """RenderingBackend returning scripted page texts."""

    def __init__(
        self,
        pages: Sequence[str] = (),
        fail_load: bool = False,
        fail_on_page: Optional[int] = None,
    ) -> None:
        self.pages = list(pages)
        self.fail_load = fail_load
        self.fail_on_page = fail_on_page
        self.pages_read: list[int] = []
        self.closed = False

    def load_document(self, data: bytes) -> str:
        if self.fail_load:
            raise LoadError("corrupt document")
        return "handle"

    def page_count(self, handle: str) -> int:
        return len(self.pages)

    def get_page_text(self, handle: str, page_number: int) -> str:
        self.pages_read.append(page_number)
        if page_number == self.fail_on_page:
            raise PageError(page_number, "unreadable page")
        return self.pages[page_number - 1]

    def close(self, handle: str) -> None:
        self.closed = True


class FakeSpeechEngine:
    """Speech engine whose flags the test drives directly."""

    def __init__(self, voices: Sequence[Voice] = ()) -> None:
        self.voices = list(voices)
        self.speaking = False
        self.paused = False
        self.spoken: list[tuple] = []
        self.cancel_calls = 0
        self.pause_calls = 0
        self.resume_calls = 0
        self.on_end: Optional[Callable[[], None]] = None

    async def list_voices(self) -> list[Voice]:
        return list(self.voices)

    def speak(self, text, voice, locale, rate, on_end) -> None:
        self.spoken.append((text, voice, locale, rate))
        self.speaking = True
        self.paused = False
        self.on_end = on_end

    def pause(self) -> None:
        self.pause_calls += 1
        self.paused = True

    def resume(self) -> None:
        self.resume_calls += 1
        self.paused = False

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.speaking = False
        self.paused = False

    def finish(self) -> None:
        """Simulate the current utterance ending naturally."""
        self.speaking = False
        if self.on_end is not None:
            self.on_end()


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_ai(translation: str = "translated text") -> AsyncMock:
    """AI collaborator mock with plausible default answers."""
    ai = AsyncMock()
    ai.translate = AsyncMock(return_value=translation)
    ai.summarize = AsyncMock(return_value="a summary")
    ai.extract_keywords = AsyncMock(return_value=["alpha", "beta"])
    ai.search = AsyncMock(return_value=ResearchResult(text="findings"))
    ai.generate_chapter_index = AsyncMock(return_value=ChapterIndexResult())
    return ai


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(InMemoryKeyValueStore())


@pytest.fixture
def document() -> Document:
    return Document(
        name="sample.pdf",
        original_text="A A\n\nB\n\nA",
        page_texts=["A A", "B", "A"],
    )


@pytest.fixture
def stored_document(store: SessionStore, document: Document) -> Document:
    store.save_document(document)
    return document
