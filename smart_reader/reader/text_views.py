"""
Text View Manager - Derived text artifacts and the display-mode toggle

Owns the AI-derived views of a document (translation, summary, keywords,
chapter index) and gates the calls that produce them.

Design decisions:
    - Single-flight per (document id, artifact kind): concurrent callers
      share one asyncio task and therefore one network call
    - The shared task is shielded, so a cancelled caller never cancels the
      request the other callers are waiting on
    - Results are applied to the persisted document, not to the caller's
      snapshot, so a result that lands after navigation still sticks
    - A degraded result is stored (so there is something to show) but
      marked in Document.degraded_fields, so the next request retries
      instead of serving the error from cache
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .models import ArtifactKind, ChapterIndexItem, Document
from .session_store import SessionStore
from ..core.config import settings
from ..core.errors import NoTranslationAvailable
from ..llm.ai_service import AiCollaborator, is_degraded
from ..observability.logging import get_logger
from ..observability.metrics import AI_CACHE_HITS, SINGLE_FLIGHT_JOINS

logger = get_logger(__name__)

T = TypeVar("T")

DocumentListener = Callable[[Document], None]


class SingleFlight:
    """
    At most one in-progress task per key.

    Usage:
        flights = SingleFlight()
        value = await flights.run(("doc-1", "summary"), lambda: fetch())
    """

    def __init__(self) -> None:
        self._tasks: dict[tuple[str, str], asyncio.Task] = {}

    def in_flight(self, key: tuple[str, str]) -> bool:
        return key in self._tasks

    async def run(self, key: tuple[str, str], factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            SINGLE_FLIGHT_JOINS.labels(kind=key[1]).inc()
            logger.debug("text_views.request.joined", doc_id=key[0], kind=key[1])
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]


class TextViewManager:
    """
    Requests, caches and applies AI-derived text views.

    Usage:
        views = TextViewManager(AiService.from_settings(), store)
        translated = await views.request_translation(document)
        document = views.toggle_view(document)
    """

    def __init__(self, ai: AiCollaborator, store: SessionStore) -> None:
        self._ai = ai
        self._store = store
        self._flights = SingleFlight()
        self._listeners: list[DocumentListener] = []

    def add_listener(self, listener: DocumentListener) -> None:
        """Call listener with every document a result was applied to."""
        self._listeners.append(listener)

    def in_flight(self, doc_id: str, kind: ArtifactKind) -> bool:
        return self._flights.in_flight((doc_id, kind.value))

    # ─── Requests ───────────────────────────────────────────

    async def request_translation(self, document: Document) -> str:
        """
        Translate the original text and flip the display mode.

        The mode flips relative to the mode shown when the request started,
        so asking for a translation while viewing it switches back to the
        original. A cached translation skips the network but still flips.
        """
        start_mode = document.display_mode
        if self._is_cached(document, ArtifactKind.TRANSLATION):
            AI_CACHE_HITS.labels(kind=ArtifactKind.TRANSLATION.value).inc()
            self._apply(document, display_mode=start_mode.opposite)
            return document.translated_text

        async def produce() -> str:
            translated = await self._ai.translate(document.original_text)
            self._apply(
                document,
                ArtifactKind.TRANSLATION,
                is_degraded(translated),
                translated_text=translated,
                display_mode=start_mode.opposite,
            )
            return translated

        return await self._flights.run((document.id, ArtifactKind.TRANSLATION.value), produce)

    async def request_summary(self, document: Document) -> str:
        if self._is_cached(document, ArtifactKind.SUMMARY):
            AI_CACHE_HITS.labels(kind=ArtifactKind.SUMMARY.value).inc()
            return document.summary

        async def produce() -> str:
            summary = await self._ai.summarize(document.original_text)
            self._apply(document, ArtifactKind.SUMMARY, is_degraded(summary), summary=summary)
            return summary

        return await self._flights.run((document.id, ArtifactKind.SUMMARY.value), produce)

    async def request_keywords(self, document: Document) -> list[str]:
        if self._is_cached(document, ArtifactKind.KEYWORDS):
            AI_CACHE_HITS.labels(kind=ArtifactKind.KEYWORDS.value).inc()
            return list(document.keywords)

        source = document.original_text[: settings.keyword_source_char_limit]

        async def produce() -> list[str]:
            keywords = await self._ai.extract_keywords(source)
            self._apply(document, ArtifactKind.KEYWORDS, is_degraded(keywords), keywords=keywords)
            return keywords

        return list(
            await self._flights.run((document.id, ArtifactKind.KEYWORDS.value), produce)
        )

    async def request_chapters(self, document: Document) -> list[ChapterIndexItem]:
        if self._is_cached(document, ArtifactKind.CHAPTERS):
            AI_CACHE_HITS.labels(kind=ArtifactKind.CHAPTERS.value).inc()
            return list(document.chapters)

        source = document.original_text[: settings.chapter_source_char_limit]

        async def produce() -> list[ChapterIndexItem]:
            result = await self._ai.generate_chapter_index(source)
            logger.info(
                "text_views.chapters.detected",
                doc_id=document.id,
                source=result.kind.value,
                count=len(result.chapters),
            )
            chapters = list(result.chapters)
            self._apply(document, ArtifactKind.CHAPTERS, False, chapters=chapters)
            return chapters

        return list(
            await self._flights.run((document.id, ArtifactKind.CHAPTERS.value), produce)
        )

    # ─── Toggle ─────────────────────────────────────────────

    def toggle_view(self, document: Document) -> Document:
        """
        Switch between the original and translated text.

        Raises:
            NoTranslationAvailable: No translation was ever requested;
                display_mode is left unchanged.
        """
        current = self._store.get_document(document.id) or document
        if current.translated_text is None:
            logger.info("text_views.toggle.no_translation", doc_id=document.id)
            raise NoTranslationAvailable(document.id)
        return self._apply(current, display_mode=current.display_mode.opposite)

    # ─── Private helpers ────────────────────────────────────

    @staticmethod
    def _is_cached(document: Document, kind: ArtifactKind) -> bool:
        if document.is_degraded(kind):
            return False
        if kind is ArtifactKind.TRANSLATION:
            return document.translated_text is not None
        if kind is ArtifactKind.SUMMARY:
            return document.summary is not None
        if kind is ArtifactKind.KEYWORDS:
            return bool(document.keywords)
        return bool(document.chapters)

    def _apply(
        self,
        document: Document,
        kind: Optional[ArtifactKind] = None,
        degraded: bool = False,
        **changes: Any,
    ) -> Document:
        """
        Apply changes on top of the stored document and persist them.

        When the document was deleted while a request was in flight, the
        changes are applied to the caller's snapshot only and nothing is
        written back.
        """
        stored = self._store.get_document(document.id)
        base = stored or document

        if kind is not None:
            marked = [k for k in base.degraded_fields if k is not kind]
            if degraded:
                marked.append(kind)
                logger.warning("text_views.result.degraded", doc_id=document.id, kind=kind.value)
            changes["degraded_fields"] = marked

        updated = base.with_changes(**changes)
        if stored is None:
            logger.warning(
                "text_views.apply.document_missing",
                doc_id=document.id,
                kind=kind.value if kind else None,
            )
            return updated

        self._store.save_document(updated)
        for listener in self._listeners:
            listener(updated)
        return updated
