"""Community symptom reports, their solutions and solution votes."""
import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List

from sqlalchemy import (
    String,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Enum as SAEnum,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON as SA_JSON

from symptomshare.db.session import Base, engine
from symptomshare.utils.encryption import EncryptedText

try:
    from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
except Exception:
    PG_JSONB = None


def json_col_type():
    # In tests or non-Postgres environments, force generic JSON to avoid JSONB with SQLite
    if os.getenv("FORCE_GENERIC_JSON", "").lower() in ("1", "true", "yes"):
        return SA_JSON
    if engine.dialect.name == "postgresql" and PG_JSONB is not None:
        return PG_JSONB
    return SA_JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SymptomStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    SEE_SPECIALIST = "see_specialist"


class VoteType(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class SymptomReport(Base):
    __tablename__ = "symptoms"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(EncryptedText, nullable=False)
    symptoms_keywords: Mapped[list] = mapped_column(json_col_type(), nullable=False, default=list)
    status: Mapped[SymptomStatus] = mapped_column(
        SAEnum(SymptomStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SymptomStatus.OPEN,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )

    solutions: Mapped[List["Solution"]] = relationship(
        "Solution",
        back_populates="symptom",
        cascade="all, delete-orphan",
        order_by="Solution.created_at",
    )


class Solution(Base):
    __tablename__ = "solutions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    symptom_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("symptoms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    solution_text: Mapped[str] = mapped_column(EncryptedText, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    symptom: Mapped["SymptomReport"] = relationship("SymptomReport", back_populates="solutions")
    votes: Mapped[List["SolutionVote"]] = relationship(
        "SolutionVote",
        back_populates="solution",
        cascade="all, delete-orphan",
    )


class SolutionVote(Base):
    __tablename__ = "solution_votes"
    __table_args__ = (
        UniqueConstraint("solution_id", "user_id", name="uq_solution_votes_solution_user"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    solution_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("solutions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    vote_type: Mapped[VoteType] = mapped_column(
        SAEnum(VoteType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    solution: Mapped["Solution"] = relationship("Solution", back_populates="votes")
