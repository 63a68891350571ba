"""Core - configuration and error taxonomy"""
from .config import Settings, settings
from .errors import (
    AiServiceError,
    ExtractionError,
    LoadError,
    NoDocumentOpen,
    NoTranslationAvailable,
    PageError,
    PersistenceCorruption,
    PlaybackUnsupported,
    ReaderError,
    ReadOnlyDocumentError,
)

__all__ = [
    "Settings", "settings",
    "ReaderError",
    "LoadError", "PageError", "ExtractionError",
    "AiServiceError",
    "NoTranslationAvailable",
    "NoDocumentOpen",
    "PersistenceCorruption",
    "ReadOnlyDocumentError",
    "PlaybackUnsupported",
]
