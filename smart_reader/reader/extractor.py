"""
Document Extractor - Per-page and full text from raw documents

Turns the raw bytes of an uploaded document into ordered page texts and
the concatenated full text every other component reads from.

Design decisions:
    - Depends only on the narrow RenderingBackend contract (load, count,
      page text); nothing here knows about drawing pages
    - Pages are read strictly one after another, each off the event loop
      via asyncio.to_thread, so page order is preserved and the loop stays
      responsive during long extractions
    - Any page failure aborts the whole extraction: a partial document would
      carry a page count that search and chapter navigation cannot reconcile
    - full_text is page_texts joined by PAGE_SEPARATOR, exactly
    - Input guards (size, magic bytes, page count) come from settings
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

import fitz  # PyMuPDF

from .models import PAGE_SEPARATOR
from ..core.config import settings
from ..core.errors import ExtractionError, LoadError, PageError
from ..observability.logging import get_logger
from ..observability.metrics import EXTRACTION_PAGES
from ..observability.tracing import get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)

# PDF magic bytes: every valid PDF starts with this
_PDF_MAGIC_BYTES = b"%PDF"


# ──────────────────────────────────────────────────────────────
# Collaborator contract
# ──────────────────────────────────────────────────────────────


class RenderingBackend(Protocol):
    """Narrow text-extraction contract of the rendering engine."""

    def load_document(self, data: bytes) -> Any:
        """Open a document; raises LoadError."""

    def page_count(self, handle: Any) -> int:
        """Number of pages in an opened document."""

    def get_page_text(self, handle: Any, page_number: int) -> str:
        """Text of a 1-indexed page; raises PageError."""

    def close(self, handle: Any) -> None:
        """Release an opened document."""


# ──────────────────────────────────────────────────────────────
# Data classes
# ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExtractedText:
    """
    Text extracted from a document.

    Attributes:
        page_texts: One string per page, page 1 first.
        full_text: page_texts joined by two newlines.
    """

    page_texts: tuple[str, ...] = field(default_factory=tuple)
    full_text: str = ""

    @property
    def page_count(self) -> int:
        return len(self.page_texts)


# ──────────────────────────────────────────────────────────────
# PyMuPDF backend
# ──────────────────────────────────────────────────────────────


class PyMuPDFBackend:
    """
    RenderingBackend over PyMuPDF (fitz).

    Security:
        - Rejects empty input and input above settings.max_pdf_size_bytes
        - Validates PDF magic bytes (don't trust filenames or MIME types)
    """

    def __init__(self, filetype: str = "pdf") -> None:
        self._filetype = filetype
        self._max_file_size: int = settings.max_pdf_size_bytes

    def load_document(self, data: bytes) -> fitz.Document:
        if not data:
            raise LoadError("Document is empty (0 bytes)")

        if len(data) > self._max_file_size:
            raise LoadError(
                f"Document exceeds maximum size "
                f"({len(data) / (1024 * 1024):.1f}MB > {settings.max_pdf_size_mb}MB)"
            )

        if self._filetype == "pdf" and not data.startswith(_PDF_MAGIC_BYTES):
            raise LoadError("Not a valid PDF (bad magic bytes, expected %PDF header)")

        try:
            return fitz.open(stream=data, filetype=self._filetype)
        except Exception as exc:
            raise LoadError(f"Failed to open document: {exc}") from exc

    def page_count(self, handle: fitz.Document) -> int:
        return len(handle)

    def get_page_text(self, handle: fitz.Document, page_number: int) -> str:
        try:
            page = handle[page_number - 1]  # 1-indexed -> 0-indexed
            return page.get_text("text").strip()
        except Exception as exc:
            raise PageError(page_number, str(exc)) from exc

    def close(self, handle: fitz.Document) -> None:
        handle.close()


# ──────────────────────────────────────────────────────────────
# Core extractor
# ──────────────────────────────────────────────────────────────


class DocumentExtractor:
    """
    Extracts ordered page texts and full text from a raw document.

    Usage:
        extractor = DocumentExtractor(PyMuPDFBackend())
        extracted = await extractor.extract(pdf_bytes)
        print(extracted.page_count, extracted.full_text[:100])
    """

    def __init__(self, backend: RenderingBackend | None = None) -> None:
        self._backend: RenderingBackend = backend or PyMuPDFBackend()
        self._max_pages: int = settings.max_pdf_pages

    async def extract(self, data: bytes) -> ExtractedText:
        """
        Extract every page of a document.

        Args:
            data: Raw document bytes.

        Returns:
            ExtractedText with page texts in page order.

        Raises:
            ExtractionError: If the document cannot be opened, is too long,
                or any page's text cannot be read.
        """
        with tracer.start_as_current_span("document_extractor.extract") as span:
            try:
                handle = await asyncio.to_thread(self._backend.load_document, data)
            except LoadError as exc:
                logger.warning("document_extractor.load_failed", error=str(exc))
                raise ExtractionError(str(exc)) from exc
            except Exception as exc:
                logger.error("document_extractor.load_failed", error=str(exc))
                raise ExtractionError(f"Could not open document: {exc}") from exc

            try:
                page_count = await asyncio.to_thread(self._backend.page_count, handle)
                span.set_attribute("reader.page_count", page_count)

                if page_count > self._max_pages:
                    raise ExtractionError(
                        f"Document has {page_count} pages; the limit is {self._max_pages}"
                    )

                logger.info("document_extractor.extract.start", page_count=page_count)

                page_texts: list[str] = []
                for page_number in range(1, page_count + 1):
                    try:
                        text = await asyncio.to_thread(
                            self._backend.get_page_text, handle, page_number
                        )
                    except PageError as exc:
                        logger.warning(
                            "document_extractor.page_failed",
                            page_number=page_number,
                            error=str(exc),
                        )
                        raise ExtractionError(str(exc), page_number=page_number) from exc
                    page_texts.append(text)
            except ExtractionError:
                raise
            except Exception as exc:
                logger.error("document_extractor.backend_failed", error=str(exc))
                raise ExtractionError(f"Could not read document: {exc}") from exc
            finally:
                self._close(handle)

        full_text = PAGE_SEPARATOR.join(page_texts)
        EXTRACTION_PAGES.observe(len(page_texts))

        logger.info(
            "document_extractor.extract.complete",
            page_count=len(page_texts),
            total_chars=len(full_text),
        )

        return ExtractedText(page_texts=tuple(page_texts), full_text=full_text)

    def _close(self, handle: Any) -> None:
        try:
            self._backend.close(handle)
        except Exception as exc:
            logger.warning("document_extractor.close_failed", error=str(exc))
