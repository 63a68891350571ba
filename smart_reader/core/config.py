"""
Application Configuration - Environment-based settings

Uses Pydantic Settings for type-safe configuration.
Centralized configuration for the Smart Reader session engine.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root: two levels up from smart_reader/core/config.py
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Sensitive values (API keys) MUST come from .env or environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ─────────────────────────────────────────────
    # Application
    # ─────────────────────────────────────────────
    service_name: str = "smart-reader"
    environment: str = Field(default="development", alias="ENV")
    log_level: str = "INFO"
    debug: bool = False

    # ─────────────────────────────────────────────
    # LLM (Groq) - translation, summaries, keywords, chapters
    # ─────────────────────────────────────────────
    groq_api_key: Optional[str] = Field(
        default=None,
        alias="GROQ_API_KEY",
        description="Groq API key. AI features degrade to notices when unset.",
    )
    default_llm_model: str = "llama-3.3-70b-versatile"
    llm_max_tokens: int = Field(default=4096, ge=64, le=32768)
    translation_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    default_temperature: float = Field(default=0.3, ge=0.0, le=2.0)

    # ─────────────────────────────────────────────
    # Reading language
    # ─────────────────────────────────────────────
    target_language: str = Field(
        default="Arabic",
        description="Language translations and summaries are written in.",
    )
    target_locale: str = Field(
        default="ar-SA",
        description="Preferred speech locale; also the hint used when no voice is selected.",
    )

    # ─────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────
    session_db_path: str = Field(
        default="data/smart_reader.db",
        description="SQLite key-value database holding settings, positions and the library.",
    )

    # ─────────────────────────────────────────────
    # Extraction limits (security: prevent abuse)
    # ─────────────────────────────────────────────
    max_pdf_size_mb: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Maximum allowed document size in megabytes.",
    )
    max_pdf_pages: int = Field(
        default=1000,
        ge=1,
        le=5000,
        description="Maximum allowed page count per document.",
    )

    # ─────────────────────────────────────────────
    # AI request shaping
    # ─────────────────────────────────────────────
    keyword_source_char_limit: int = Field(
        default=5000,
        ge=100,
        le=200000,
        description="Characters of the document sent for keyword extraction.",
    )
    chapter_source_char_limit: int = Field(
        default=20000,
        ge=100,
        le=500000,
        description="Characters of the document sent for chapter detection.",
    )

    # ─────────────────────────────────────────────
    # Speech playback
    # ─────────────────────────────────────────────
    tts_poll_interval_s: float = Field(
        default=0.5,
        gt=0.0,
        le=10.0,
        description="Interval of the speech engine reconciliation poll.",
    )
    voice_discovery_timeout_s: float = Field(
        default=3.0,
        gt=0.0,
        le=60.0,
        description="How long to wait for the engine's voice list.",
    )

    # ─────────────────────────────────────────────
    # Observability
    # ─────────────────────────────────────────────
    otlp_endpoint: Optional[str] = Field(default=None, alias="OTLP_ENDPOINT")

    # ─── Computed properties ────────────────────

    @property
    def session_db_absolute(self) -> Path:
        """Resolve session_db_path to absolute path from project root."""
        path = Path(self.session_db_path)
        if not path.is_absolute():
            path = _PROJECT_ROOT / path
        return path.resolve()

    @property
    def max_pdf_size_bytes(self) -> int:
        """Convert max_pdf_size_mb to bytes for input validation."""
        return self.max_pdf_size_mb * 1024 * 1024

    @property
    def ai_configured(self) -> bool:
        """Whether an API key is available for AI features."""
        return bool(self.groq_api_key)


# Global settings instance
settings = Settings()
