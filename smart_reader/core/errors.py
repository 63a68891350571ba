"""
Error taxonomy for the reading session engine.

Propagation policy:
    - ExtractionError ends an ingestion attempt; nothing is added to the library.
    - AiServiceError never leaves the AI layer; it becomes a degraded string.
    - NoTranslationAvailable reaches the caller so the UI can prompt for a
      translation instead of silently doing nothing.
    - PersistenceCorruption is raised and caught inside SessionStore.
    - PlaybackUnsupported disables playback controls once, at startup.
"""

from typing import Optional


class ReaderError(Exception):
    """Base class for all reading session errors."""


# ─── Extraction ─────────────────────────────────────────


class LoadError(ReaderError):
    """The rendering backend could not open the document."""


class PageError(ReaderError):
    """The rendering backend could not read a page's text."""

    def __init__(self, page_number: int, message: str):
        self.page_number = page_number
        super().__init__(f"Page {page_number}: {message}")


class ExtractionError(ReaderError):
    """The document is unparseable or one of its pages could not be read."""

    def __init__(self, message: str, page_number: Optional[int] = None):
        self.page_number = page_number
        super().__init__(message)


# ─── AI ─────────────────────────────────────────────────


class AiServiceError(ReaderError):
    """Network/backend failure or missing configuration in the AI layer."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


# ─── Text views ─────────────────────────────────────────


class NoTranslationAvailable(ReaderError):
    """Toggle requested before any translation was attempted."""

    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(
            f"Document {doc_id} has no translation yet; request a translation first."
        )


# ─── Persistence ────────────────────────────────────────


class PersistenceCorruption(ReaderError):
    """A stored value could not be parsed."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Corrupt value for {key!r}: {message}")


# ─── Library ────────────────────────────────────────────


class NoDocumentOpen(ReaderError):
    """A document action was requested with no document open."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Cannot {action}: no document is open.")


class ReadOnlyDocumentError(ReaderError):
    """Preloaded documents cannot be deleted or have their text replaced."""

    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(f"Document {doc_id} is preloaded and read-only.")


# ─── Playback ───────────────────────────────────────────


class PlaybackUnsupported(ReaderError):
    """No speech engine is available in the host environment."""
