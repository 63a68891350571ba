"""
Preloaded Catalog - Built-in read-only documents

Seeded into the library on session start when missing. Preloaded documents
keep a fixed id and text and cannot be deleted; their reading state
(position, translation, summary) is persisted like any other document.
"""

from __future__ import annotations

from .models import PAGE_SEPARATOR, Document
from .session_store import SessionStore
from ..observability.logging import get_logger

logger = get_logger(__name__)

WELCOME_DOCUMENT_ID = "preloaded-welcome"

_WELCOME_PAGES = (
    "Introduction: Welcome to Smart Reader\n"
    "Open a PDF to read its text page by page. Your place in every document "
    "is remembered between sessions.",
    "Chapter 1: Reading tools\n"
    "Translate a document into your reading language, ask for a short summary "
    "or a list of keywords, and jump between chapters.\n"
    "Search finds every page that mentions a word and counts the matches.",
    "Chapter 2: Listening\n"
    "Any visible text can be read aloud. Pause, resume or stop at any time, "
    "and pick the voice and speed you prefer.",
    "الفصل الثالث: القراءة بالعربية\n"
    "يمكنك ترجمة أي مستند إلى العربية وتلخيصه واستخراج كلماته المفتاحية.",
)


def preloaded_documents() -> list[Document]:
    """The built-in catalog, freshly constructed."""
    return [
        Document(
            id=WELCOME_DOCUMENT_ID,
            name="Welcome to Smart Reader",
            original_text=PAGE_SEPARATOR.join(_WELCOME_PAGES),
            page_texts=list(_WELCOME_PAGES),
            is_preloaded=True,
        ),
    ]


def seed_preloaded(store: SessionStore) -> list[Document]:
    """
    Add catalog documents that are not yet in the library.

    Existing entries are left alone so their reading state survives restarts.

    Returns:
        The documents that were added.
    """
    added: list[Document] = []
    for document in preloaded_documents():
        if store.has_document(document.id):
            continue
        if store.save_document(document):
            added.append(document)
    if added:
        logger.info("preloaded.seeded", count=len(added), ids=[d.id for d in added])
    return added
