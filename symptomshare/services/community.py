from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from symptomshare.models.symptom import (
    Solution,
    SolutionVote,
    SymptomReport,
    SymptomStatus,
    VoteType,
)

logger = logging.getLogger("symptomshare")

FEED_FILTERS = ("all", "open", "resolved", "my_posts")


class SymptomNotFound(LookupError):
    pass


class SolutionNotFound(LookupError):
    pass


class NotOwner(PermissionError):
    pass


class InvalidStatusTransition(ValueError):
    pass


def create_symptom(db: Session, user_id: str, title: str, description: str, keywords: List[str]) -> SymptomReport:
    report = SymptomReport(
        user_id=user_id,
        title=title.strip(),
        description=description.strip(),
        symptoms_keywords=list(keywords),
        status=SymptomStatus.OPEN,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info({
        "function": "create_symptom",
        "symptom_id": report.id,
        "keywords": len(report.symptoms_keywords or []),
    })
    return report


def _base_query(db: Session):
    return (
        db.query(SymptomReport)
        .options(selectinload(SymptomReport.solutions))
        .order_by(SymptomReport.created_at.desc())
    )


def list_symptoms(db: Session, feed: str = "all", user_id: Optional[str] = None) -> List[SymptomReport]:
    if feed not in FEED_FILTERS:
        raise ValueError(f"unknown filter: {feed}")
    q = _base_query(db)
    if feed == "my_posts":
        q = q.filter(SymptomReport.user_id == user_id)
    elif feed == "open":
        q = q.filter(SymptomReport.status == SymptomStatus.OPEN)
    elif feed == "resolved":
        q = q.filter(SymptomReport.status == SymptomStatus.RESOLVED)
    return q.all()


def get_symptom(db: Session, symptom_id: str) -> SymptomReport:
    report = _base_query(db).filter(SymptomReport.id == symptom_id).first()
    if report is None:
        raise SymptomNotFound(symptom_id)
    return report


def candidate_pool(db: Session, exclude_id: str) -> List[SymptomReport]:
    """Every other report, newest first."""
    return _base_query(db).filter(SymptomReport.id != exclude_id).all()


def resolve_symptom(
    db: Session,
    symptom_id: str,
    user_id: str,
    solution_text: Optional[str] = None,
    see_specialist: bool = False,
) -> SymptomReport:
    """Move an open report to resolved (with a solution) or see_specialist."""
    report = get_symptom(db, symptom_id)
    if report.user_id != user_id:
        raise NotOwner(symptom_id)
    if report.status != SymptomStatus.OPEN:
        raise InvalidStatusTransition(f"{report.status.value} is terminal")

    text = (solution_text or "").strip()
    if see_specialist:
        report.status = SymptomStatus.SEE_SPECIALIST
    else:
        if not text:
            raise ValueError("solution_text is required to resolve")
        report.status = SymptomStatus.RESOLVED
        report.solutions.append(Solution(user_id=user_id, solution_text=text))

    db.commit()
    db.refresh(report)
    logger.info({"function": "resolve_symptom", "symptom_id": report.id, "status": report.status.value})
    return report


def delete_symptom(db: Session, symptom_id: str, user_id: str) -> None:
    report = get_symptom(db, symptom_id)
    if report.user_id != user_id:
        raise NotOwner(symptom_id)
    db.delete(report)
    db.commit()
    logger.info({"function": "delete_symptom", "symptom_id": symptom_id})


def _get_solution(db: Session, solution_id: str) -> Solution:
    solution = db.query(Solution).filter(Solution.id == solution_id).first()
    if solution is None:
        raise SolutionNotFound(solution_id)
    return solution


def cast_vote(db: Session, solution_id: str, user_id: str, vote_type: VoteType) -> Optional[SolutionVote]:
    """Record a vote; repeating the same vote withdraws it, a different one replaces it.

    Returns the caller's current vote, or None when it was withdrawn.
    """
    _get_solution(db, solution_id)
    existing = (
        db.query(SolutionVote)
        .filter(SolutionVote.solution_id == solution_id, SolutionVote.user_id == user_id)
        .first()
    )
    if existing is not None and existing.vote_type == vote_type:
        db.delete(existing)
        db.commit()
        logger.info({"function": "cast_vote", "solution_id": solution_id, "status": "withdrawn"})
        return None

    if existing is not None:
        existing.vote_type = vote_type
        vote = existing
        status = "replaced"
    else:
        vote = SolutionVote(solution_id=solution_id, user_id=user_id, vote_type=vote_type)
        db.add(vote)
        status = "inserted"
    db.commit()
    db.refresh(vote)
    logger.info({"function": "cast_vote", "solution_id": solution_id, "status": status})
    return vote


def vote_tally(db: Session, solution_id: str, user_id: Optional[str] = None) -> Dict[str, object]:
    _get_solution(db, solution_id)
    votes = db.query(SolutionVote).filter(SolutionVote.solution_id == solution_id).all()
    mine = next((v.vote_type for v in votes if user_id and v.user_id == user_id), None)
    return {
        "solution_id": solution_id,
        "likes": sum(1 for v in votes if v.vote_type == VoteType.LIKE),
        "dislikes": sum(1 for v in votes if v.vote_type == VoteType.DISLIKE),
        "user_vote": mine,
    }


__all__ = [
    "FEED_FILTERS",
    "SymptomNotFound",
    "SolutionNotFound",
    "NotOwner",
    "InvalidStatusTransition",
    "create_symptom",
    "list_symptoms",
    "get_symptom",
    "candidate_pool",
    "resolve_symptom",
    "delete_symptom",
    "cast_vote",
    "vote_tally",
]
