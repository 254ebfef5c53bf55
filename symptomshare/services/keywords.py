"""
Keyword extraction for symptom descriptions.

Behavior:
- Ask Gemini for a short comma-separated list of medical terms.
- If the model is not configured, fails, or returns nothing usable, fall back
  to a deterministic vocabulary filter. The fallback is a pure function of the
  description, so the same text always yields the same keywords in order.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from symptomshare.config import Settings, get_settings
from symptomshare.services import gemini

logger = logging.getLogger("symptomshare")

# Domain vocabulary for the fallback path
HEALTH_VOCABULARY = (
    # symptoms
    "pain", "ache", "sore", "hurt", "burning", "tingling", "numb", "dizzy", "nausea",
    "fever", "cough", "cold", "fatigue", "tired", "weakness", "swelling", "rash",
    "itch", "bleeding", "discharge", "vomiting", "diarrhea", "constipation",
    "headache", "migraine", "cramp", "spasm", "stiff", "tender", "pressure",
    "breathless", "wheezing", "congestion", "runny", "stuffy", "sneezing",
    # body parts
    "head", "neck", "shoulder", "back", "chest", "stomach", "abdomen", "belly",
    "arm", "hand", "finger", "leg", "foot", "toe", "knee", "elbow", "wrist", "ankle",
    "eye", "ear", "nose", "throat", "mouth", "tooth", "teeth", "tongue", "gum",
    "heart", "lung", "liver", "kidney", "skin", "muscle", "joint", "bone",
    # severity / duration
    "severe", "mild", "moderate", "chronic", "acute", "sudden", "gradual",
    "constant", "intermittent", "persistent", "occasional", "frequent",
    "days", "weeks", "months", "hours", "morning", "night", "evening",
    # descriptors
    "sharp", "dull", "throbbing", "stabbing", "shooting", "radiating",
    "swollen", "inflamed", "red", "bruised", "infected",
)

STOP_WORDS = frozenset({
    "the", "and", "but", "for", "with", "have", "has", "had", "been", "was", "were",
    "are", "this", "that", "these", "those", "from", "into", "onto", "about", "after",
    "before", "when", "what", "which", "while", "where", "there", "their", "they",
    "them", "then", "than", "very", "really", "just", "also", "some", "any", "all",
    "can", "could", "would", "should", "will", "not", "feel", "feels", "feeling",
    "like", "since", "still", "keep", "keeps", "get", "gets", "getting", "got",
    "near", "year", "years", "early", "clear", "hear", "heard", "fear", "wear",
    "other", "others", "hello", "thanks", "please", "help", "anyone", "does",
})

MIN_TOKEN_LENGTH = 3
_PUNCT_RE = re.compile(r"[\W_]+")
_POSSESSIVE_RE = re.compile(r"['\u2019]s\b")
_BULLET_RE = re.compile(r"^(?:[-*•]+|\d+[.)])\s*")


def _dedupe(items: Iterable[str], limit: int) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
        if len(out) >= limit:
            break
    return out


def _strip_punctuation(token: str) -> str:
    return _PUNCT_RE.sub("", _POSSESSIVE_RE.sub("", token))


def _tokens(description: str) -> Iterable[str]:
    # "knee's" -> "knee", "left-side" -> "left", "side"
    for raw in (description or "").lower().split():
        for piece in raw.split("-"):
            yield _strip_punctuation(piece)


def _in_vocabulary(token: str) -> bool:
    return any(term in token or token in term for term in HEALTH_VOCABULARY)


def fallback_keywords(description: str, limit: int = 10) -> List[str]:
    """Deterministic keyword filter used when the model path is unavailable."""
    tokens = _tokens(description)
    found = (
        t for t in tokens
        if len(t) >= MIN_TOKEN_LENGTH and t not in STOP_WORDS and _in_vocabulary(t)
    )
    return _dedupe(found, limit)


def parse_keyword_response(text: str, limit: int = 10) -> List[str]:
    """Split a model reply into normalized keywords."""
    parts = re.split(r"[,\n]", text or "")
    cleaned = []
    for part in parts:
        kw = _BULLET_RE.sub("", part.strip()).strip().strip("\"'`.").strip().lower()
        if kw:
            cleaned.append(kw)
    return _dedupe(cleaned, limit)


def build_keyword_prompt(description: str) -> str:
    return (
        "Extract the most important medical keywords and symptoms from this health description.\n"
        "Return ONLY a comma-separated list of keywords (no explanations, no numbers, "
        "no filler words such as 'the', 'and', 'have').\n"
        "Focus on: specific symptoms, body parts, pain types, duration, severity.\n\n"
        f'Description: "{description}"\n\n'
        "Keywords:"
    )


async def extract_keywords(description: str, settings: Optional[Settings] = None) -> List[str]:
    """Return normalized keywords for a description. Never raises."""
    settings = settings or get_settings()
    limit = settings.max_keywords
    engine = "fallback"
    keywords: List[str] = []

    if settings.llm_configured:
        try:
            reply = await gemini.generate_text(build_keyword_prompt(description), settings=settings)
            keywords = parse_keyword_response(reply, limit)
            engine = "gemini"
        except Exception as exc:
            logger.warning({"function": "extract_keywords", "stage": "llm_failed", "error": str(exc)})
            keywords = []

    if not keywords:
        keywords = fallback_keywords(description, limit)
        engine = "fallback"

    logger.info({"function": "extract_keywords", "engine": engine, "count": len(keywords)})
    return keywords


__all__ = [
    "extract_keywords",
    "fallback_keywords",
    "parse_keyword_response",
    "build_keyword_prompt",
    "HEALTH_VOCABULARY",
    "STOP_WORDS",
]
