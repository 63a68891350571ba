"""
Reader Module - The reading session engine

- Document extraction into per-page and full text
- Cross-page search with a caller-owned result cursor
- AI-derived text views with single-flight requests
- Speech playback state machine with engine reconciliation
- Durable reading state through the session store

Note: DocumentExtractor requires PyMuPDF (fitz), and the text views and
      session pull in the AI layer. Those imports are lazy.
"""

from .models import (
    ArtifactKind,
    ChapterIndexItem,
    DisplayMode,
    DisplaySettings,
    Document,
    SearchResult,
    TtsSessionState,
    Voice,
)
from .search_index import SearchCursor, SearchIndex
from .session_store import SessionStore

__all__ = [
    "ArtifactKind",
    "ChapterIndexItem",
    "DisplayMode",
    "DisplaySettings",
    "Document",
    "SearchResult",
    "TtsSessionState",
    "Voice",
    "SearchCursor",
    "SearchIndex",
    "SessionStore",
    "DocumentExtractor",
    "PyMuPDFBackend",
    "TextViewManager",
    "PlaybackController",
    "PlaybackState",
    "ReadingSession",
    "SessionState",
    "SessionStatus",
]


def __getattr__(name: str):
    """Lazy import for modules with heavy or circular dependencies."""
    if name in ("DocumentExtractor", "PyMuPDFBackend"):
        from . import extractor
        return getattr(extractor, name)
    elif name == "TextViewManager":
        from .text_views import TextViewManager
        return TextViewManager
    elif name in ("PlaybackController", "PlaybackState"):
        from . import playback
        return getattr(playback, name)
    elif name in ("ReadingSession", "SessionState", "SessionStatus"):
        from . import session
        return getattr(session, name)
    raise AttributeError(f"module 'smart_reader.reader' has no attribute {name}")
