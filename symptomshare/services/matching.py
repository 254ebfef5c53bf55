"""
Similar-case matching for symptom reports.

Two matchers share one result shape:
- ``match_with_ai`` asks Gemini to score every candidate against a rubric and
  returns a tagged ``MatchOutcome`` so callers can tell "no matches" apart
  from "the call failed".
- ``match_fallback`` is a pure keyword-overlap scorer.

``find_similar`` composes them: an AI outcome that succeeded is authoritative
(even when empty); a failed one degrades to keyword matching.
"""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ValidationError

from symptomshare.config import Settings, get_settings
from symptomshare.schemas.symptoms import MatchMethod, MatchMode, MatchResult, SymptomReportIn
from symptomshare.services import gemini
from symptomshare.services.keywords import fallback_keywords

logger = logging.getLogger("symptomshare")

_FENCE_RE = re.compile(r"^\s*```(?:json|JSON)?\s*|\s*```\s*$")


class MatchResponseError(ValueError):
    """The model reply could not be read as a match list."""


class AIMatchItem(BaseModel):
    index: int
    similarity: float
    reasoning: Optional[str] = None


class AIMatchPayload(BaseModel):
    # Items are validated one at a time so a single bad row does not sink the reply
    matches: List[Any]


@dataclass
class MatchOutcome:
    ok: bool
    matches: List[MatchResult] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def success(cls, matches: List[MatchResult]) -> "MatchOutcome":
        return cls(ok=True, matches=matches)

    @classmethod
    def failure(cls, error: str) -> "MatchOutcome":
        return cls(ok=False, error=error)


@dataclass
class SimilarCases:
    matches: List[MatchResult]
    method: MatchMethod


# ---------- keyword similarity ----------

def keywords_related(a: str, b: str) -> bool:
    """Two keywords match when either contains the other ("head" ~ "headache")."""
    return bool(a) and bool(b) and (a in b or b in a)


def common_keywords(target: Sequence[str], candidate: Sequence[str]) -> List[str]:
    """Target keywords that relate to at least one candidate keyword."""
    return [k for k in target if any(keywords_related(k, c) for c in candidate)]


def keyword_overlap(target: Sequence[str], candidate: Sequence[str]) -> float:
    return len(common_keywords(target, candidate)) / max(len(target), 1)


def normalize_keywords(keywords: Sequence[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for kw in keywords or []:
        k = (kw or "").strip().lower()
        if k and k not in seen:
            seen.add(k)
            out.append(k)
    return out


def normalize_report(report: SymptomReportIn, settings: Optional[Settings] = None) -> SymptomReportIn:
    """Copy of ``report`` with clean keywords; derives them from the description when missing."""
    settings = settings or get_settings()
    keywords = normalize_keywords(report.keywords)
    if not keywords:
        keywords = fallback_keywords(report.description, settings.max_keywords)
    return report.model_copy(update={"keywords": keywords})


def _candidates(target: SymptomReportIn, pool: Sequence[SymptomReportIn]) -> List[SymptomReportIn]:
    return [c for c in pool if c.id != target.id]


def _to_result(candidate: SymptomReportIn, **extra) -> MatchResult:
    return MatchResult(**candidate.model_dump(), **extra)


def match_fallback(
    target: SymptomReportIn,
    pool: Sequence[SymptomReportIn],
    settings: Optional[Settings] = None,
) -> List[MatchResult]:
    """Rank candidates by keyword overlap with the target. Pure and deterministic."""
    settings = settings or get_settings()
    scored: List[Tuple[float, SymptomReportIn, List[str]]] = []
    for candidate in _candidates(target, pool):
        shared = common_keywords(target.keywords, candidate.keywords)
        score = len(shared) / max(len(target.keywords), 1)
        if score > settings.keyword_overlap_threshold:
            scored.append((score, candidate, shared))

    # sorted() is stable, so ties keep pool order
    scored = sorted(scored, key=lambda item: item[0], reverse=True)
    return [
        _to_result(
            candidate,
            similarity_score=min(score, 1.0),
            match_method=MatchMethod.KEYWORD,
            common_keywords=shared,
        )
        for score, candidate, shared in scored
    ]


# ---------- AI matching ----------

def build_match_prompt(target: SymptomReportIn, batch: Sequence[SymptomReportIn]) -> str:
    listing = "\n".join(
        f"[{idx}] Title: {c.title}\n    Description: {c.description}\n    Status: {c.status.value}"
        for idx, c in enumerate(batch)
    )
    return (
        "You are a medical symptom matching system. Compare the current symptom report "
        "with each candidate report and score how similar they are.\n\n"
        "Current Symptom:\n"
        f'Title: "{target.title}"\n'
        f'Description: "{target.description}"\n\n'
        "Candidates:\n"
        f"{listing}\n\n"
        "Scoring rubric:\n"
        "- 0.90-1.00: nearly identical symptoms in the same body location\n"
        "- 0.70-0.89: same core symptom, different severity or duration\n"
        "- 0.50-0.69: related symptoms or the same body system\n"
        "- 0.30-0.49: weak but meaningful overlap\n"
        "- below 0.30: not similar, leave it out\n\n"
        "Respond with JSON only, no code fences and no commentary, in exactly this shape:\n"
        '{"matches": [{"index": <candidate index>, "similarity": <0.0-1.0>, '
        '"reasoning": "<one short sentence>"}]}\n'
        'Order by similarity, highest first. If nothing is similar return {"matches": []}.'
    )


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def parse_match_response(text: str, pool_size: int, threshold: float) -> List[Tuple[int, float, str]]:
    """Validate a model reply; return (index, similarity, reasoning) rows that survive the cutoff.

    Raises MatchResponseError when the reply is not a ``{"matches": [...]}`` object;
    malformed items inside the list are skipped one by one.
    """
    body = _strip_fences(text)
    try:
        raw = json.loads(body)
    except json.JSONDecodeError:
        start, end = body.find("{"), body.rfind("}")
        if start < 0 or end <= start:
            raise MatchResponseError("reply is not JSON")
        try:
            raw = json.loads(body[start:end + 1])
        except json.JSONDecodeError as exc:
            raise MatchResponseError(f"reply is not JSON: {exc.msg}") from exc

    try:
        payload = AIMatchPayload.model_validate(raw)
    except ValidationError as exc:
        raise MatchResponseError(f"unexpected reply shape: {exc.error_count()} error(s)") from exc

    rows: List[Tuple[int, float, str]] = []
    for entry in payload.matches:
        try:
            item = AIMatchItem.model_validate(entry)
        except ValidationError:
            logger.info({"function": "parse_match_response", "stage": "item_skipped"})
            continue
        if not 0 <= item.index < pool_size:
            continue
        # NaN slips past a plain "< threshold" check
        if not math.isfinite(item.similarity) or item.similarity < threshold:
            continue
        rows.append((item.index, min(item.similarity, 1.0), (item.reasoning or "").strip()))
    return rows


async def match_with_ai(
    target: SymptomReportIn,
    pool: Sequence[SymptomReportIn],
    settings: Optional[Settings] = None,
) -> MatchOutcome:
    """Score the pool with Gemini in batches and merge the results."""
    settings = settings or get_settings()
    if not settings.llm_configured:
        return MatchOutcome.failure("language model not configured")

    candidates = _candidates(target, pool)
    if not candidates:
        return MatchOutcome.success([])

    size = settings.max_candidates_per_call
    best: Dict[int, Tuple[float, str]] = {}
    try:
        for start in range(0, len(candidates), size):
            batch = candidates[start:start + size]
            reply = await gemini.generate_text(
                build_match_prompt(target, batch), settings=settings, json_output=True
            )
            for idx, similarity, reasoning in parse_match_response(
                reply, len(batch), settings.similarity_threshold
            ):
                pool_idx = start + idx
                if pool_idx not in best or similarity > best[pool_idx][0]:
                    best[pool_idx] = (similarity, reasoning)

        # Re-sort regardless of the order the model used
        ranked = sorted(best.items(), key=lambda kv: (-kv[1][0], kv[0]))
        matches = [
            _to_result(
                candidates[idx],
                similarity_score=similarity,
                match_reasoning=reasoning or None,
                match_method=MatchMethod.AI_ADVANCED,
            )
            for idx, (similarity, reasoning) in ranked
        ]
    except Exception as exc:
        logger.warning({"function": "match_with_ai", "stage": "failed", "error": str(exc)})
        return MatchOutcome.failure(str(exc) or exc.__class__.__name__)

    return MatchOutcome.success(matches)


async def find_similar(
    target: SymptomReportIn,
    pool: Sequence[SymptomReportIn],
    settings: Optional[Settings] = None,
    mode: MatchMode = MatchMode.AUTO,
) -> SimilarCases:
    """Rank similar cases for ``target``. Never raises for matcher failures."""
    settings = settings or get_settings()
    target = normalize_report(target, settings)
    candidates = [normalize_report(c, settings) for c in _candidates(target, pool)]

    if not candidates:
        return SimilarCases(matches=[], method=MatchMethod.NONE)

    if mode == MatchMode.KEYWORD:
        matches = match_fallback(target, candidates, settings)
        return SimilarCases(matches=matches, method=MatchMethod.KEYWORD)

    outcome = await match_with_ai(target, candidates, settings)
    if outcome.ok:
        logger.info({
            "function": "find_similar",
            "method": MatchMethod.AI_ADVANCED.value,
            "pool": len(candidates),
            "matches": len(outcome.matches),
        })
        return SimilarCases(matches=outcome.matches, method=MatchMethod.AI_ADVANCED)

    matches = match_fallback(target, candidates, settings)
    logger.info({
        "function": "find_similar",
        "method": MatchMethod.KEYWORD.value,
        "reason": outcome.error,
        "pool": len(candidates),
        "matches": len(matches),
    })
    return SimilarCases(matches=matches, method=MatchMethod.KEYWORD)


__all__ = [
    "MatchOutcome",
    "MatchResponseError",
    "SimilarCases",
    "keywords_related",
    "common_keywords",
    "keyword_overlap",
    "normalize_keywords",
    "normalize_report",
    "match_fallback",
    "build_match_prompt",
    "parse_match_response",
    "match_with_ai",
    "find_similar",
]
