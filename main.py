"""
Smart Reader - Main Entry Point

CLI interface for ingesting documents and working with the library.
"""

import argparse
import asyncio
from pathlib import Path


async def _open_session():
    """Build a session over the configured SQLite store"""
    from smart_reader.core.config import settings
    from smart_reader.observability import setup_logging, setup_metrics, setup_tracing
    from smart_reader.reader import ReadingSession, SessionStore
    from smart_reader.storage import SqliteKeyValueStore

    setup_logging()
    setup_metrics(settings.environment)
    setup_tracing()

    store = SessionStore(SqliteKeyValueStore())
    session = ReadingSession(store)
    await session.start()
    return session


def _open_or_report(session, doc_id: str):
    document = session.open_document(doc_id)
    if document is None:
        print(f"❌ {session.state.error}")
    return document


async def run_ingest(file_path: str):
    """Ingest a PDF document into the library"""
    path = Path(file_path)
    if not path.exists():
        print(f"❌ File not found: {file_path}")
        return

    print(f"📄 Ingesting: {path.name}")
    session = await _open_session()
    try:
        document = await session.add_document(path.read_bytes(), path.name)
        if document is None:
            print(f"❌ Ingestion failed: {session.state.error}")
        else:
            print(f"✅ Added {document.name} ({document.page_count} pages)")
            print(f"🆔 {document.id}")
    finally:
        await session.close()


async def run_list():
    """List the library, newest first"""
    session = await _open_session()
    try:
        documents = session.list_documents()
        if not documents:
            print("📚 The library is empty")
            return
        for document in documents:
            marker = "📌" if document.is_preloaded else "📄"
            translated = " [translated]" if document.has_translation else ""
            print(
                f"{marker} {document.id}  {document.name}  "
                f"({document.page_count} pages, page {document.last_read_page}){translated}"
            )
    finally:
        await session.close()


async def run_search(doc_id: str, term: str):
    """Search a document's pages"""
    session = await _open_session()
    try:
        if _open_or_report(session, doc_id) is None:
            return
        results = session.search(term)
        if not results:
            print(f"🔍 No matches for '{term}'")
            return
        total = sum(result.count for result in results)
        print(f"🔍 {total} matches on {len(results)} pages")
        for result in results:
            print(f"   page {result.page}: {result.count}")
    finally:
        await session.close()


async def run_ai(command: str, doc_id: str):
    """Translate, summarize, extract keywords or index chapters"""
    from smart_reader.core.config import settings

    if not settings.ai_configured:
        print("⚠️  GROQ_API_KEY is not set, results will be error notices")
    session = await _open_session()
    try:
        if _open_or_report(session, doc_id) is None:
            return
        print("⏳ Processing...\n")
        if command == "translate":
            print(await session.request_translation())
        elif command == "summarize":
            print(await session.request_summary())
        elif command == "keywords":
            print(", ".join(await session.request_keywords()))
        elif command == "chapters":
            chapters = await session.request_chapters()
            if not chapters:
                print("📑 No chapters detected")
            for chapter in chapters:
                print(f"📑 {chapter.title}")
    finally:
        await session.close()


async def run_research(query: str):
    """Ask the research assistant"""
    session = await _open_session()
    try:
        result = await session.research(query)
        print("=" * 60)
        print(result.text)
        if result.sources:
            print("-" * 60)
            for source in result.sources:
                print(f"📚 {source.title}: {source.uri}")
        print("=" * 60)
    finally:
        await session.close()


async def run_delete(doc_id: str):
    """Delete a user document"""
    from smart_reader.core.errors import ReadOnlyDocumentError

    session = await _open_session()
    try:
        if session.delete_document(doc_id):
            print(f"🗑️  Deleted {doc_id}")
        else:
            print(f"❌ Document not found: {doc_id}")
    except ReadOnlyDocumentError as exc:
        print(f"❌ {exc}")
    finally:
        await session.close()


async def run_settings(changes: dict):
    """Show or update display settings"""
    session = await _open_session()
    try:
        if changes:
            session.update_display_settings(**changes)
        current = session.display_settings
        print(f"🔠 Font size:  {current.font_size_percent}%")
        print(f"🔤 Font:       {current.font_family}")
        print(f"🎨 Background: {current.background_color}")
        print(f"✏️  Text:       {current.text_color}")
    finally:
        await session.close()


def main():
    from smart_reader.reader.models import AVAILABLE_BACKGROUND_COLORS, AVAILABLE_FONT_FAMILIES

    parser = argparse.ArgumentParser(description="Smart Reader")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Add a PDF to the library")
    ingest_parser.add_argument("file", type=str, help="Path to PDF file")

    subparsers.add_parser("list", help="List the library")

    search_parser = subparsers.add_parser("search", help="Search a document")
    search_parser.add_argument("doc_id", type=str, help="Document ID")
    search_parser.add_argument("term", type=str, help="Search term")

    for name, help_text in (
        ("translate", "Translate a document"),
        ("summarize", "Summarize a document"),
        ("keywords", "Extract a document's keywords"),
        ("chapters", "Detect a document's chapters"),
    ):
        ai_parser = subparsers.add_parser(name, help=help_text)
        ai_parser.add_argument("doc_id", type=str, help="Document ID")

    research_parser = subparsers.add_parser("research", help="Research a topic")
    research_parser.add_argument("query", type=str, help="Topic to research")

    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("doc_id", type=str, help="Document ID")

    settings_parser = subparsers.add_parser("settings", help="Show or change display settings")
    settings_parser.add_argument("--font-size", type=int, help="Font size percent (50-200)")
    settings_parser.add_argument("--font", choices=AVAILABLE_FONT_FAMILIES, help="Font family")
    settings_parser.add_argument(
        "--background", choices=AVAILABLE_BACKGROUND_COLORS, help="Background color"
    )

    args = parser.parse_args()

    if args.command == "ingest":
        asyncio.run(run_ingest(args.file))
    elif args.command == "list":
        asyncio.run(run_list())
    elif args.command == "search":
        asyncio.run(run_search(args.doc_id, args.term))
    elif args.command in ("translate", "summarize", "keywords", "chapters"):
        asyncio.run(run_ai(args.command, args.doc_id))
    elif args.command == "research":
        asyncio.run(run_research(args.query))
    elif args.command == "delete":
        asyncio.run(run_delete(args.doc_id))
    elif args.command == "settings":
        changes = {
            key: value
            for key, value in (
                ("font_size_percent", args.font_size),
                ("font_family", args.font),
                ("background_color", args.background),
            )
            if value is not None
        }
        asyncio.run(run_settings(changes))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
