"""Free-text wellness suggestions informed by resolved similar cases."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from symptomshare.config import Settings, get_settings
from symptomshare.schemas.symptoms import SimilarCase
from symptomshare.services import gemini

logger = logging.getLogger("symptomshare")

FALLBACK_SUGGESTIONS = (
    "Unable to generate suggestions at this time. "
    "Please consult with a healthcare professional for personalized advice."
)
SPECIALIST_PLACEHOLDER = "Consulted with specialist"


def case_solution_text(case: SimilarCase) -> str:
    if case.solution_text and case.solution_text.strip():
        return case.solution_text.strip()
    for sol in case.solutions:
        if sol.solution_text and sol.solution_text.strip():
            return sol.solution_text.strip()
    return SPECIALIST_PLACEHOLDER


def build_suggestion_prompt(description: str, cases: Sequence[SimilarCase], max_cases: int = 3) -> str:
    prompt = f'Based on these symptoms: "{description}"\n\n'
    if cases:
        prompt += "Here are some similar cases that were resolved:\n"
        for idx, case in enumerate(cases[:max_cases], start=1):
            prompt += f"{idx}. {case.title}: {case_solution_text(case)}\n"
        prompt += "\n"
    prompt += (
        "Provide brief, general wellness suggestions as 3-4 bullet points.\n"
        "End with a note that this is not medical advice and that they should consult "
        "a healthcare professional if symptoms persist or worsen.\n"
        "Keep it concise and supportive."
    )
    return prompt


async def generate_suggestions(
    description: str,
    cases: Optional[Sequence[SimilarCase]] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Return model-written suggestions, or the fixed fallback text. Never raises."""
    settings = settings or get_settings()
    if not settings.llm_configured:
        return FALLBACK_SUGGESTIONS

    prompt = build_suggestion_prompt(description, list(cases or []), settings.max_suggestion_cases)
    try:
        text = await gemini.generate_text(prompt, settings=settings)
    except Exception as exc:
        logger.warning({"function": "generate_suggestions", "stage": "llm_failed", "error": str(exc)})
        return FALLBACK_SUGGESTIONS

    return text.strip() or FALLBACK_SUGGESTIONS


__all__ = ["generate_suggestions", "build_suggestion_prompt", "case_solution_text", "FALLBACK_SUGGESTIONS"]
