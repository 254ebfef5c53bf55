# symptomshare/routes/matching_routes.py
import logging

from fastapi import APIRouter, HTTPException, Request, status

from symptomshare.middleware.rate_limit import LLM_ROUTE_LIMIT, limiter
from symptomshare.schemas.symptoms import (
    ExtractKeywordsRequest,
    ExtractKeywordsResponse,
    MatchSymptomsRequest,
    MatchSymptomsResponse,
    SuggestionsRequest,
    SuggestionsResponse,
)
from symptomshare.services import keywords as keywords_service
from symptomshare.services import matching as matching_service
from symptomshare.services import suggestions as suggestions_service

router = APIRouter(prefix="/api", tags=["matching"])
logger = logging.getLogger("symptomshare")


@router.post("/extract-keywords", response_model=ExtractKeywordsResponse)
@limiter.limit(LLM_ROUTE_LIMIT)
async def extract_keywords(request: Request, payload: ExtractKeywordsRequest):
    description = (payload.description or "").strip()
    if not description:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Description is required")

    keywords = await keywords_service.extract_keywords(description)
    return ExtractKeywordsResponse(keywords=keywords)


@router.post("/match-symptoms", response_model=MatchSymptomsResponse)
@limiter.limit(LLM_ROUTE_LIMIT)
async def match_symptoms(request: Request, payload: MatchSymptomsRequest):
    """Rank ``allSymptoms`` by similarity to ``currentSymptom``."""
    if payload.current_symptom is None or payload.all_symptoms is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required parameters")

    logger.info({
        "function": "match_symptoms",
        "stage": "start",
        "pool": len(payload.all_symptoms),
        "mode": payload.mode.value,
    })
    result = await matching_service.find_similar(
        payload.current_symptom, payload.all_symptoms, mode=payload.mode
    )
    return MatchSymptomsResponse(matches=result.matches, method=result.method)


@router.post("/generate-suggestions", response_model=SuggestionsResponse)
@limiter.limit(LLM_ROUTE_LIMIT)
async def generate_suggestions(request: Request, payload: SuggestionsRequest):
    symptoms = (payload.symptoms or "").strip()
    if not symptoms:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Symptoms are required")

    text = await suggestions_service.generate_suggestions(symptoms, payload.similar_cases or [])
    return SuggestionsResponse(suggestions=text)
