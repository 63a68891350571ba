"""LLM - Groq transport, response parsing and the AI collaborator"""
from .ai_service import (
    AiCollaborator,
    AiService,
    DegradedText,
    ResearchResult,
    ResearchSource,
    is_degraded,
)
from .response_parser import Parsed, ParseError, parse_json_response

__all__ = [
    "AiCollaborator",
    "AiService",
    "DegradedText",
    "ResearchResult",
    "ResearchSource",
    "is_degraded",
    "Parsed",
    "ParseError",
    "parse_json_response",
]
