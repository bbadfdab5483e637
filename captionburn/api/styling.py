"""Async client for the optional hosted text-generation provider (Gemini).

WHY: AI-assisted styling sends the whole plain caption document to a
language model and asks for a restyled copy. The HTTP details of that call
belong here, not in the subtitle renderer.

HOW: One method, generate(prompt), posts a ``generateContent`` request with
the API key as a query parameter and returns the first candidate's text.
Every failure (transport, status, body shape) becomes StylingError so the
renderer has one thing to catch before falling back.

RULES:
- Never retried here; the renderer falls back to rules immediately
- Raises StylingError for any failure, never httpx errors
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from captionburn.config import GEMINI_BASE_URL, GEMINI_MODEL, Settings
from captionburn.errors import ConfigError, StylingError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 120.0
TEMPERATURE = 0.3
MAX_OUTPUT_TOKENS = 8000


class GeminiClient:
    """Minimal prompt → completion client for the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ConfigError("Styling provider API key is required")
        self._api_key = api_key
        self.model = model
        self._base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> Optional[GeminiClient]:
        """Build a client when a key is configured, else return None."""
        if not settings.gemini_api_key:
            return None
        return cls(api_key=settings.gemini_api_key, model=settings.gemini_model, **kwargs)

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the completion text."""
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        }
        logger.debug("Requesting styling from %s (%d prompt chars)", self.model, len(prompt))
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self.timeout_s),
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    "/models/{}:generateContent".format(self.model),
                    params={"key": self._api_key},
                    json=body,
                )
        except httpx.HTTPError as exc:
            raise StylingError("styling request failed: {}".format(exc)) from exc

        if resp.status_code != 200:
            raise StylingError(
                "styling provider returned HTTP {}".format(resp.status_code)
            )
        try:
            return _completion_text(resp.json())
        except ValueError as exc:
            raise StylingError("styling response unreadable: {}".format(exc)) from exc


def _completion_text(data: Dict[str, Any]) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("no completion text in response") from exc
    if not isinstance(text, str) or not text.strip():
        raise ValueError("empty completion text")
    return text
