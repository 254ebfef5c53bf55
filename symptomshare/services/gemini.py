"""Thin async client for the Gemini ``generateContent`` REST endpoint.

Every failure mode (no key, transport error, HTTP error, blocked or empty
candidate) surfaces as ``GeminiError`` so callers have one thing to catch.
Tests monkeypatch ``generate_text``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from symptomshare.config import Settings, get_settings

logger = logging.getLogger("symptomshare")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiError(RuntimeError):
    """The language model could not produce a usable response."""


def _first_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


async def generate_text(
    prompt: str,
    *,
    settings: Optional[Settings] = None,
    json_output: bool = False,
) -> str:
    """Send a single-turn prompt and return the model's text."""
    settings = settings or get_settings()
    if not settings.llm_configured:
        raise GeminiError("GEMINI_API_KEY is not set")

    body: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt.strip()}]}]}
    if json_output:
        body["generationConfig"] = {"responseMimeType": "application/json"}

    url = f"{GEMINI_BASE_URL}/{settings.gemini_model}:generateContent"
    try:
        async with httpx.AsyncClient(timeout=settings.gemini_timeout_s) as client:
            r = await client.post(
                url,
                params={"key": settings.gemini_api_key},
                headers={"Content-Type": "application/json"},
                json=body,
            )
            r.raise_for_status()
            data = r.json()
    except httpx.TimeoutException as exc:
        raise GeminiError(f"timed out after {settings.gemini_timeout_s}s") from exc
    except httpx.HTTPStatusError as exc:
        raise GeminiError(f"HTTP {exc.response.status_code}") from exc
    except (httpx.HTTPError, ValueError) as exc:
        raise GeminiError(str(exc) or exc.__class__.__name__) from exc

    text = _first_text(data).strip()
    if not text:
        raise GeminiError("empty response")
    return text


__all__ = ["GeminiError", "generate_text"]
