"""
AI Service - Translation, summaries, keywords, chapters and research

The AI collaborator of the reading session. Every public method returns
something displayable: when the backend is unconfigured or a call fails,
the result is a DegradedText notice instead of an exception, so display
code never needs null checks and the user can retry the same action.

Design decisions:
    - Async throughout (GroqClient.agenerate)
    - GroqClient injected; None means "unconfigured" and every call degrades
    - Failures inside the layer are AiServiceError, converted to DegradedText
      at the public boundary
    - Structured responses (chapters, research) go through the tagged
      parser; chapter detection falls back to a heading heuristic
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .groq_client import GroqClient
from .response_parser import Parsed, parse_json_response
from ..core.config import settings
from ..core.errors import AiServiceError
from ..observability.logging import get_logger
from ..observability.metrics import AI_REQUEST_COUNT, record_ai_latency
from ..observability.tracing import get_tracer
from ..reader.chapters import (
    ChapterIndexResult,
    ChapterSource,
    chapters_from_model,
    heuristic_index,
)

logger = get_logger(__name__)
tracer = get_tracer(__name__)


# ──────────────────────────────────────────────────────────────
# Result types
# ──────────────────────────────────────────────────────────────


class DegradedText(str):
    """
    A displayable notice standing in for an AI result.

    Behaves as a plain string everywhere; isinstance() tells callers the
    value should not be cached as a real result.
    """

    __slots__ = ()


def is_degraded(value: object) -> bool:
    if isinstance(value, DegradedText):
        return True
    if isinstance(value, (list, tuple)):
        return any(isinstance(item, DegradedText) for item in value)
    return False


@dataclass(frozen=True)
class ResearchSource:
    title: str
    uri: str


@dataclass(frozen=True)
class ResearchResult:
    """Research answer plus the sources the model cited."""

    text: str
    sources: tuple[ResearchSource, ...] = field(default_factory=tuple)


class AiCollaborator(Protocol):
    """Functional contract the session depends on."""

    async def translate(self, text: str) -> str: ...

    async def summarize(self, text: str) -> str: ...

    async def extract_keywords(self, text: str) -> list[str]: ...

    async def search(self, query: str) -> ResearchResult: ...

    async def generate_chapter_index(self, text: str) -> ChapterIndexResult: ...


# ──────────────────────────────────────────────────────────────
# Prompts
# ──────────────────────────────────────────────────────────────

_TRANSLATE_PROMPT = """Translate the following text into {language}. Keep the translation natural and accurate, and preserve meaningful line breaks. If the text is already in {language}, improve its wording and add diacritics where helpful.

Return ONLY the translated text.

Text:
{text}"""

_SUMMARY_PROMPT = """Summarize the following text concisely and accurately in {language}. Focus on the main ideas.

Text:
{text}"""

_KEYWORDS_PROMPT = """Extract the main keywords from the following text. Write them in {language} as a single comma-separated list, with no numbering and no other text.

Text:
{text}"""

_CHAPTERS_PROMPT = """Analyze the following text and list its main chapters or sections with their titles, exactly as they appear in the text.

Output ONLY a JSON array of objects, each with a single key "title":
[
    {{"title": "Introduction"}},
    {{"title": "Chapter One: History of the subject"}}
]

Text:
---
{text}
---"""

_RESEARCH_PROMPT = """Find open-access research papers about the following topic: "{query}". Write a short summary of their main findings in {language}.

Output ONLY a JSON object in this format:
{{
    "summary": "summary text",
    "sources": [{{"title": "paper title", "uri": "https://..."}}]
}}"""

_RESEARCH_SYSTEM_PROMPT = (
    "You are a research assistant. Be accurate and concise, and only cite "
    "sources you are confident exist."
)


# ──────────────────────────────────────────────────────────────
# Core service
# ──────────────────────────────────────────────────────────────


class AiService:
    """
    Groq-backed AI collaborator.

    Usage:
        service = AiService.from_settings()
        summary = await service.summarize(document.original_text)
    """

    def __init__(self, llm: Optional[GroqClient] = None, language: Optional[str] = None) -> None:
        self._llm = llm
        self._language = language or settings.target_language
        self._model = settings.default_llm_model

    @classmethod
    def from_settings(cls) -> AiService:
        """Build the service, degrading gracefully when no API key is set."""
        try:
            llm = GroqClient()
        except ValueError as exc:
            logger.warning("ai_service.unconfigured", error=str(exc))
            llm = None
        return cls(llm=llm)

    @property
    def configured(self) -> bool:
        return self._llm is not None

    # ─── Public API ─────────────────────────────────────────

    async def translate(self, text: str) -> str:
        if not text.strip():
            return ""
        try:
            return await self._complete(
                "translation",
                _TRANSLATE_PROMPT.format(language=self._language, text=text),
                temperature=settings.translation_temperature,
            )
        except AiServiceError as exc:
            return self._degraded("translation", exc)

    async def summarize(self, text: str) -> str:
        try:
            return await self._complete(
                "summary",
                _SUMMARY_PROMPT.format(language=self._language, text=text),
            )
        except AiServiceError as exc:
            return self._degraded("summary", exc)

    async def extract_keywords(self, text: str) -> list[str]:
        try:
            response = await self._complete(
                "keywords",
                _KEYWORDS_PROMPT.format(language=self._language, text=text),
            )
        except AiServiceError as exc:
            return [self._degraded("keyword extraction", exc)]
        # Arabic comma as well as the ASCII one
        normalized = response.replace("،", ",").replace("\n", ",")
        return [kw.strip() for kw in normalized.split(",") if kw.strip()]

    async def search(self, query: str) -> ResearchResult:
        try:
            response = await self._complete(
                "research",
                _RESEARCH_PROMPT.format(query=query, language=self._language),
                system_prompt=_RESEARCH_SYSTEM_PROMPT,
            )
        except AiServiceError as exc:
            return ResearchResult(text=self._degraded("research", exc))

        outcome = parse_json_response(response, expect=dict)
        if isinstance(outcome, Parsed):
            summary = outcome.value.get("summary")
            raw_sources = outcome.value.get("sources")
            if not isinstance(raw_sources, list):
                raw_sources = []
            sources = tuple(
                ResearchSource(title=str(item.get("title", "")), uri=str(item["uri"]))
                for item in raw_sources
                if isinstance(item, dict) and item.get("uri")
            )
            if isinstance(summary, str) and summary.strip():
                return ResearchResult(text=summary.strip(), sources=sources)

        # Unstructured answer: show it as-is, without sources
        return ResearchResult(text=response.strip())

    async def generate_chapter_index(self, text: str) -> ChapterIndexResult:
        try:
            response = await self._complete(
                "chapters",
                _CHAPTERS_PROMPT.format(text=text),
                temperature=0.1,
            )
        except AiServiceError as exc:
            logger.warning("ai_service.chapters.fallback", reason="call_failed", error=str(exc))
            return heuristic_index(text)

        outcome = parse_json_response(response, expect=list)
        if isinstance(outcome, Parsed):
            chapters = chapters_from_model(outcome.value)
            if chapters:
                return ChapterIndexResult(chapters=tuple(chapters), kind=ChapterSource.MODEL)

        logger.warning(
            "ai_service.chapters.fallback",
            reason="unexpected_format",
            response_preview=response[:200],
        )
        return heuristic_index(text)

    # ─── Private helpers ────────────────────────────────────

    async def _complete(
        self,
        kind: str,
        prompt: str,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Run one completion; every failure becomes AiServiceError."""
        if self._llm is None:
            raise AiServiceError(kind, "AI service is not configured (GROQ_API_KEY missing)")

        start = time.perf_counter()
        with tracer.start_as_current_span(f"ai_service.{kind}") as span:
            span.set_attribute("reader.prompt_chars", len(prompt))
            try:
                response = await self._llm.agenerate(
                    prompt,
                    model=self._model,
                    temperature=temperature,
                    system_prompt=system_prompt,
                )
            except Exception as exc:
                AI_REQUEST_COUNT.labels(kind=kind, status="error").inc()
                logger.error("ai_service.request_failed", kind=kind, error=str(exc))
                raise AiServiceError(kind, str(exc)) from exc

        latency = time.perf_counter() - start
        record_ai_latency(kind, latency)
        AI_REQUEST_COUNT.labels(kind=kind, status="success").inc()
        logger.info(
            "ai_service.request_complete",
            kind=kind,
            latency_ms=round(latency * 1000),
            response_chars=len(response),
        )
        return response

    def _degraded(self, operation: str, exc: AiServiceError) -> DegradedText:
        if self._llm is None:
            return DegradedText(
                f"The {operation} service is currently unavailable. "
                f"Check that the AI API key is configured."
            )
        return DegradedText(f"An error occurred during {operation}: {exc.message}")
