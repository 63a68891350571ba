"""
Groq Client - Async chat completions for AI reading tools

Rate-limit aware: retries with exponential backoff on 429 errors.
"""

import asyncio
import os
from typing import Optional

from groq import AsyncGroq

from ..core.config import settings
from ..observability.logging import get_logger

logger = get_logger(__name__)

# Retry settings for Groq rate limits
_MAX_RETRIES = 3
_BASE_DELAY_S = 2.0   # Start with 2s delay
_MAX_DELAY_S = 30.0   # Cap at 30s


class GroqClient:
    """
    Async client for the Groq chat completions API.

    Raises ValueError at construction when no API key is configured so
    callers can fall back to degraded behaviour up front.
    """

    def __init__(self, api_key: Optional[str] = None):
        api_key = api_key or settings.groq_api_key or os.getenv("GROQ_API_KEY")
        if not api_key:
            raise ValueError("GROQ_API_KEY not set")

        self.async_client = AsyncGroq(api_key=api_key)

    async def agenerate(
        self,
        prompt: str,
        model: str = None,
        max_tokens: int = None,
        temperature: float = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Generate a response asynchronously with rate-limit retry.

        Args:
            prompt: User prompt
            model: Model to use (default from settings)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            system_prompt: Optional system prompt

        Returns:
            Generated text
        """
        model = model or settings.default_llm_model

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        for attempt in range(_MAX_RETRIES + 1):
            try:
                response = await self.async_client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=max_tokens or settings.llm_max_tokens,
                    temperature=(
                        settings.default_temperature if temperature is None else temperature
                    ),
                )
                return response.choices[0].message.content or ""
            except Exception as exc:
                if _is_rate_limit_error(exc) and attempt < _MAX_RETRIES:
                    delay = _get_retry_delay(exc, attempt)
                    logger.warning(
                        "groq.rate_limited",
                        attempt=attempt + 1,
                        delay_s=delay,
                        model=model,
                    )
                    await asyncio.sleep(delay)
                else:
                    raise


def _is_rate_limit_error(exc: Exception) -> bool:
    """Check if an exception is a Groq rate-limit error (HTTP 429)."""
    exc_str = str(exc).lower()
    return (
        "429" in exc_str
        or "rate_limit" in exc_str
        or "rate limit" in exc_str
        or getattr(exc, "status_code", None) == 429
    )


def _get_retry_delay(exc: Exception, attempt: int) -> float:
    """Calculate retry delay with exponential backoff, respecting Retry-After."""
    retry_after = None
    if hasattr(exc, "headers"):
        retry_after = exc.headers.get("retry-after")  # type: ignore[union-attr]
    if hasattr(exc, "response") and hasattr(exc.response, "headers"):
        retry_after = exc.response.headers.get("retry-after")

    if retry_after:
        try:
            return min(float(retry_after), _MAX_DELAY_S)
        except (ValueError, TypeError):
            pass

    # Exponential backoff: 2s, 4s, 8s, capped at 30s
    return min(_BASE_DELAY_S * (2 ** attempt), _MAX_DELAY_S)
