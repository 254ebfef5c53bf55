# symptomshare/schemas/symptoms.py
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from symptomshare.models.symptom import SymptomStatus, VoteType


class MatchMethod(str, Enum):
    AI_ADVANCED = "ai-advanced"
    KEYWORD = "keyword"
    NONE = "none"


class MatchMode(str, Enum):
    AUTO = "auto"
    KEYWORD = "keyword"


class SolutionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: Optional[str] = None
    symptom_id: Optional[str] = None
    solution_text: str = Field("", validation_alias=AliasChoices("solution_text", "text"))
    created_at: Optional[datetime] = None


class SymptomReportIn(BaseModel):
    """A symptom report as supplied by a caller or loaded from the store."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    keywords: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("keywords", "symptoms_keywords"),
    )
    status: SymptomStatus = SymptomStatus.OPEN
    created_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    user_id: Optional[str] = None
    solutions: List[SolutionOut] = Field(default_factory=list)

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _opaque_id(cls, v):
        # ids are opaque; numeric ids from other stores are accepted as text
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("title", "description", mode="before")
    @classmethod
    def _null_text(cls, v):
        return "" if v is None else v

    @field_validator("keywords", "solutions", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v


class SymptomReportOut(SymptomReportIn):
    pass


class MatchResult(SymptomReportIn):
    similarity_score: float = Field(..., ge=0.0, le=1.0, alias="similarityScore")
    match_reasoning: Optional[str] = Field(None, alias="matchReasoning")
    match_method: MatchMethod = Field(..., alias="matchMethod")
    common_keywords: Optional[List[str]] = Field(None, alias="commonKeywords")


# --- boundary payloads ---

class ExtractKeywordsRequest(BaseModel):
    description: Optional[str] = None


class ExtractKeywordsResponse(BaseModel):
    keywords: List[str]


class MatchSymptomsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_symptom: Optional[SymptomReportIn] = Field(
        None, validation_alias=AliasChoices("currentSymptom", "current_symptom")
    )
    all_symptoms: Optional[List[SymptomReportIn]] = Field(
        None, validation_alias=AliasChoices("allSymptoms", "all_symptoms")
    )
    mode: MatchMode = MatchMode.AUTO


class MatchSymptomsResponse(BaseModel):
    matches: List[MatchResult]
    method: MatchMethod = MatchMethod.NONE


class SimilarCase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    solution_text: Optional[str] = Field(
        None, validation_alias=AliasChoices("solution_text", "solutionText")
    )
    solutions: List[SolutionOut] = Field(default_factory=list)


class SuggestionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symptoms: Optional[str] = None
    similar_cases: Optional[List[SimilarCase]] = Field(
        None, validation_alias=AliasChoices("similarCases", "similar_cases")
    )


class SuggestionsResponse(BaseModel):
    suggestions: str


# --- community store payloads ---

class SymptomCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)


class ResolveRequest(BaseModel):
    solution_text: Optional[str] = Field(None, max_length=5000)
    see_specialist: bool = False


class SimilarCasesOut(BaseModel):
    matches: List[MatchResult]
    method: MatchMethod
    suggestions: str


class VoteRequest(BaseModel):
    vote_type: VoteType


class VoteTally(BaseModel):
    solution_id: str
    likes: int = 0
    dislikes: int = 0
    user_vote: Optional[VoteType] = None
