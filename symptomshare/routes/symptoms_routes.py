# symptomshare/routes/symptoms_routes.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from symptomshare.auth.deps import CurrentUser, get_current_user
from symptomshare.db.session import get_db
from symptomshare.middleware.rate_limit import LLM_ROUTE_LIMIT, limiter
from symptomshare.schemas.symptoms import (
    ResolveRequest,
    SimilarCase,
    SimilarCasesOut,
    SymptomCreate,
    SymptomReportIn,
    SymptomReportOut,
    VoteRequest,
    VoteTally,
)
from symptomshare.services import community
from symptomshare.services import keywords as keywords_service
from symptomshare.services import matching as matching_service
from symptomshare.services import suggestions as suggestions_service

router = APIRouter(prefix="/api", tags=["symptoms"])
logger = logging.getLogger("symptomshare")


def _out(report) -> SymptomReportOut:
    return SymptomReportOut.model_validate(report, from_attributes=True)


def _load(db: Session, symptom_id: str):
    try:
        return community.get_symptom(db, symptom_id)
    except community.SymptomNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Symptom not found")


@router.post("/symptoms", response_model=SymptomReportOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(LLM_ROUTE_LIMIT)
async def create_symptom(
    request: Request,
    payload: SymptomCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Post a new report; keywords are extracted before it is stored."""
    if not payload.title.strip() or not payload.description.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and description are required")

    keywords = await keywords_service.extract_keywords(payload.description)
    report = community.create_symptom(db, current_user.id, payload.title, payload.description, keywords)
    return _out(report)


@router.get("/symptoms", response_model=List[SymptomReportOut])
def list_symptoms(
    feed: str = Query("all", alias="filter"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    if feed not in community.FEED_FILTERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"filter must be one of: {', '.join(community.FEED_FILTERS)}",
        )
    return [_out(r) for r in community.list_symptoms(db, feed, current_user.id)]


@router.get("/symptoms/{symptom_id}", response_model=SymptomReportOut)
def get_symptom(
    symptom_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return _out(_load(db, symptom_id))


@router.delete("/symptoms/{symptom_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_symptom(
    symptom_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        community.delete_symptom(db, symptom_id, current_user.id)
    except community.SymptomNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Symptom not found")
    except community.NotOwner:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can delete this post")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/symptoms/{symptom_id}/resolve", response_model=SymptomReportOut)
def resolve_symptom(
    symptom_id: str,
    payload: ResolveRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        report = community.resolve_symptom(
            db,
            symptom_id,
            current_user.id,
            solution_text=payload.solution_text,
            see_specialist=payload.see_specialist,
        )
    except community.SymptomNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Symptom not found")
    except community.NotOwner:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can resolve this post")
    except community.InvalidStatusTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Symptom is not open: {exc}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter a solution description")
    return _out(report)


@router.get("/symptoms/{symptom_id}/similar", response_model=SimilarCasesOut)
@limiter.limit(LLM_ROUTE_LIMIT)
async def similar_cases(
    request: Request,
    symptom_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Similar cases for a stored report, plus suggestions drawn from the solved ones."""
    target = SymptomReportIn.model_validate(_load(db, symptom_id), from_attributes=True)
    pool = [
        SymptomReportIn.model_validate(r, from_attributes=True)
        for r in community.candidate_pool(db, symptom_id)
    ]

    result = await matching_service.find_similar(target, pool)
    solved = [
        SimilarCase(title=m.title, solutions=m.solutions)
        for m in result.matches
        if m.solutions
    ]
    suggestions = await suggestions_service.generate_suggestions(target.description, solved)
    return SimilarCasesOut(matches=result.matches, method=result.method, suggestions=suggestions)


@router.post("/solutions/{solution_id}/vote", response_model=VoteTally)
def vote_solution(
    solution_id: str,
    payload: VoteRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        community.cast_vote(db, solution_id, current_user.id, payload.vote_type)
        tally = community.vote_tally(db, solution_id, current_user.id)
    except community.SolutionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Solution not found")
    return VoteTally(**tally)


@router.get("/solutions/{solution_id}/votes", response_model=VoteTally)
def solution_votes(
    solution_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        tally = community.vote_tally(db, solution_id, current_user.id)
    except community.SolutionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Solution not found")
    return VoteTally(**tally)
