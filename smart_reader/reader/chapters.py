"""
Chapter Detection - Chapter index from model output or heading heuristics

The model is asked for a JSON array of {"title": ...} objects. When its
answer is not in that shape, or the call failed, a line scan looks for
headings that start with a section marker. Heuristic output is reported
as its own, lower-confidence kind so callers can label it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import quote

from .models import ChapterIndexItem

# Heading prefixes the heuristic accepts (English and Arabic)
SECTION_MARKERS = (
    "chapter",
    "section",
    "part",
    "introduction",
    "preface",
    "conclusion",
    "الفصل",
    "القسم",
    "الباب",
    "مقدمة",
    "الخاتمة",
)

_MIN_HEADING_LENGTH = 5
_MAX_HEADING_LENGTH = 100
_MARKER_RE = re.compile(
    r"^(?:" + "|".join(re.escape(m) for m in SECTION_MARKERS) + r")\b",
    re.IGNORECASE,
)


class ChapterSource(str, Enum):
    """Where a chapter index came from."""

    MODEL = "model"
    HEURISTIC = "heuristic"
    EMPTY = "empty"


@dataclass(frozen=True)
class ChapterIndexResult:
    """Detected chapters and how they were found."""

    chapters: tuple[ChapterIndexItem, ...] = field(default_factory=tuple)
    kind: ChapterSource = ChapterSource.EMPTY

    @property
    def is_heuristic(self) -> bool:
        return self.kind is ChapterSource.HEURISTIC


def chapters_from_model(items: Any) -> list[ChapterIndexItem] | None:
    """
    Build chapters from a decoded model payload.

    Returns None when the payload is not a list of objects with string titles.
    """
    if not isinstance(items, list) or not items:
        return None
    if not all(isinstance(item, dict) and isinstance(item.get("title"), str) for item in items):
        return None

    chapters: list[ChapterIndexItem] = []
    for index, item in enumerate(items):
        title = item["title"].strip()
        if not title:
            continue
        chapters.append(
            ChapterIndexItem(
                id=f"chapter-{index}-{quote(title[:20], safe='')}",
                title=title,
            )
        )
    return chapters or None


def detect_heading_lines(text: str) -> list[ChapterIndexItem]:
    """Scan lines for section-marker headings."""
    chapters: list[ChapterIndexItem] = []
    for line in text.splitlines():
        line = line.strip()
        if not (_MIN_HEADING_LENGTH < len(line) < _MAX_HEADING_LENGTH):
            continue
        if _MARKER_RE.match(line):
            chapters.append(
                ChapterIndexItem(id=f"heuristic-chapter-{len(chapters)}", title=line)
            )
    return chapters


def heuristic_index(text: str) -> ChapterIndexResult:
    chapters = detect_heading_lines(text)
    if not chapters:
        return ChapterIndexResult()
    return ChapterIndexResult(chapters=tuple(chapters), kind=ChapterSource.HEURISTIC)
