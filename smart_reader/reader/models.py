"""
Reader Models - Documents, display settings, search and speech state

Pydantic models for everything that is persisted (Document, DisplaySettings)
so stored JSON is validated on the way back in; frozen dataclasses for
transient values (SearchResult, Voice, TtsSessionState).

Invariants enforced here rather than by callers:
    - Document.id, original_text, date_added and is_preloaded never change
    - Document.display_mode is Translated only once a translation was attempted
    - Chapter ids are unique within a document
    - Font sizes are clamped, scroll positions are never negative
    - DisplaySettings.text_color is derived from background_color on every update
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ──────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────

DEFAULT_FONT_FAMILY = "font-cairo"
AVAILABLE_FONT_FAMILIES = ("font-cairo", "font-noto-naskh", "font-amiri")

DEFAULT_FONT_SIZE = 18  # pixels
MIN_FONT_SIZE = 12
MAX_FONT_SIZE = 36
FONT_SIZE_STEP = 2

DEFAULT_FONT_SIZE_PERCENT = 100
MIN_FONT_SIZE_PERCENT = 50
MAX_FONT_SIZE_PERCENT = 200

DEFAULT_BACKGROUND_COLOR = "#FFFFFF"
DARK_BACKGROUND_COLOR = "#121212"
DEFAULT_TEXT_COLOR = "#1A202C"
DARK_MODE_TEXT_COLOR = "#E2E8F0"
AVAILABLE_BACKGROUND_COLORS = (
    DEFAULT_BACKGROUND_COLOR,
    "#F5F5DC",  # sepia
    "#E8F5E9",  # mint
    DARK_BACKGROUND_COLOR,
)

DEFAULT_SPEED = 1.0
MIN_SPEED = 0.5
MAX_SPEED = 2.0
SPEED_STEP = 0.1

# Joins page texts into the full text; chapter heuristics rely on it
PAGE_SEPARATOR = "\n\n"


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


# ──────────────────────────────────────────────────────────────
# Documents
# ──────────────────────────────────────────────────────────────


class DisplayMode(str, Enum):
    """Which text variant of a document is rendered."""

    ORIGINAL = "original"
    TRANSLATED = "translated"

    @property
    def opposite(self) -> DisplayMode:
        if self is DisplayMode.ORIGINAL:
            return DisplayMode.TRANSLATED
        return DisplayMode.ORIGINAL


class ArtifactKind(str, Enum):
    """AI-derived artifacts a document can carry."""

    TRANSLATION = "translation"
    SUMMARY = "summary"
    KEYWORDS = "keywords"
    CHAPTERS = "chapters"


class ChapterIndexItem(BaseModel):
    """A detected section heading used for in-document navigation."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str


class Document(BaseModel):
    """
    A single ingested reading item and its persisted reading state.

    Attributes:
        id: Opaque identifier generated at ingestion.
        name: Filename or user-defined title.
        original_text: Extracted full text (page texts joined by PAGE_SEPARATOR).
        page_texts: Per-page text in page order, used for search.
        translated_text: None until the first translation attempt.
        summary: None until the first summary attempt.
        keywords: Extracted keywords, in model order.
        chapters: Detected chapter headings.
        display_mode: Text variant currently shown.
        last_read_scroll_position: Content-relative scroll offset.
        last_read_page: 1-indexed page the reader was last on.
        font_family: Font family used for this document.
        font_size: Font size in pixels, clamped to [MIN_FONT_SIZE, MAX_FONT_SIZE].
        date_added: UTC timestamp of ingestion.
        is_preloaded: Preloaded documents are read-only and cannot be deleted.
        degraded_fields: Artifacts whose stored value is an error notice.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, frozen=True)
    name: str
    original_text: str = Field(frozen=True)
    page_texts: list[str] = Field(default_factory=list)
    translated_text: Optional[str] = None
    summary: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    chapters: list[ChapterIndexItem] = Field(default_factory=list)
    display_mode: DisplayMode = DisplayMode.ORIGINAL
    last_read_scroll_position: float = 0.0
    last_read_page: int = 1
    font_family: str = DEFAULT_FONT_FAMILY
    font_size: int = DEFAULT_FONT_SIZE
    date_added: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), frozen=True
    )
    is_preloaded: bool = Field(default=False, frozen=True)
    degraded_fields: list[ArtifactKind] = Field(default_factory=list)

    @field_validator("last_read_scroll_position")
    @classmethod
    def _non_negative_position(cls, value: float) -> float:
        if not math.isfinite(value) or value < 0:
            return 0.0
        return value

    @field_validator("last_read_page", mode="before")
    @classmethod
    def _positive_page(cls, value: Any) -> Any:
        if isinstance(value, int) and value < 1:
            return 1
        return value

    @field_validator("font_size", mode="before")
    @classmethod
    def _clamp_font_size(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return int(clamp(round(value), MIN_FONT_SIZE, MAX_FONT_SIZE))
        return value

    @field_validator("chapters")
    @classmethod
    def _unique_chapter_ids(cls, chapters: list[ChapterIndexItem]) -> list[ChapterIndexItem]:
        seen: set[str] = set()
        for chapter in chapters:
            if chapter.id in seen:
                raise ValueError(f"Duplicate chapter id: {chapter.id}")
            seen.add(chapter.id)
        return chapters

    @model_validator(mode="after")
    def _translated_mode_needs_translation(self) -> Document:
        if self.display_mode is DisplayMode.TRANSLATED and self.translated_text is None:
            raise ValueError("display_mode 'translated' requires a translation attempt")
        return self

    @property
    def page_count(self) -> int:
        return len(self.page_texts)

    @property
    def has_translation(self) -> bool:
        return self.translated_text is not None

    def is_degraded(self, kind: ArtifactKind) -> bool:
        return kind in self.degraded_fields

    def with_changes(self, **changes: Any) -> Document:
        """
        Return a validated copy with changes applied.

        Raises:
            ValueError: If a change targets a frozen field (id, original
                text, date added, preloaded flag).
        """
        fields = Document.model_fields
        frozen = sorted(name for name in changes if name in fields and fields[name].frozen)
        if frozen:
            raise ValueError(f"Cannot change frozen fields: {', '.join(frozen)}")
        data = self.model_dump()
        data.update(changes)
        return Document.model_validate(data)


# ──────────────────────────────────────────────────────────────
# Display settings
# ──────────────────────────────────────────────────────────────


class DisplaySettings(BaseModel):
    """
    Process-wide display preferences.

    text_color is not user-settable: it is recomputed from background_color
    whenever the model is built or changed through with_changes().
    """

    model_config = ConfigDict(frozen=True)

    font_size_percent: int = DEFAULT_FONT_SIZE_PERCENT
    font_family: str = DEFAULT_FONT_FAMILY
    background_color: str = DEFAULT_BACKGROUND_COLOR
    text_color: str = DEFAULT_TEXT_COLOR

    @model_validator(mode="before")
    @classmethod
    def _derive_text_color(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        background = data.get("background_color", DEFAULT_BACKGROUND_COLOR)
        if isinstance(background, str) and background.upper() == DARK_BACKGROUND_COLOR:
            data["text_color"] = DARK_MODE_TEXT_COLOR
        else:
            data["text_color"] = DEFAULT_TEXT_COLOR
        return data

    @field_validator("font_size_percent", mode="before")
    @classmethod
    def _clamp_percent(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return int(clamp(round(value), MIN_FONT_SIZE_PERCENT, MAX_FONT_SIZE_PERCENT))
        return value

    @property
    def is_dark(self) -> bool:
        return self.background_color.upper() == DARK_BACKGROUND_COLOR

    def with_changes(self, **changes: Any) -> DisplaySettings:
        """Return validated settings with changes applied."""
        changes.pop("text_color", None)
        data = self.model_dump()
        data.update(changes)
        return DisplaySettings.model_validate(data)


# ──────────────────────────────────────────────────────────────
# Search
# ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SearchResult:
    """
    Occurrences of a search term on one page.

    Attributes:
        page: 1-indexed page number.
        count: Number of non-overlapping matches on that page (>= 1).
    """

    page: int
    count: int

    def __post_init__(self) -> None:
        if self.page < 1 or self.count < 1:
            raise ValueError(f"Invalid search result: page={self.page}, count={self.count}")


# ──────────────────────────────────────────────────────────────
# Speech
# ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Voice:
    """A voice offered by the speech engine."""

    name: str
    locale: str
    default: bool = False


@dataclass(frozen=True)
class TtsSessionState:
    """
    Snapshot of playback state exposed to observers.

    Both flags False means Idle/Stopped.
    """

    is_playing: bool = False
    is_paused: bool = False
    speed: float = DEFAULT_SPEED
    available_voices: tuple[Voice, ...] = field(default_factory=tuple)
    selected_voice: Optional[Voice] = None
    supported: bool = True
