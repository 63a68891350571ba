"""
Smart Reader - Reading session engine

Turns documents into searchable page text, adds AI translation, summaries,
keywords and chapter indexes over Groq, reads text aloud through a
pluggable speech engine, and persists reading state per document.
"""

__version__ = "1.0.0"
