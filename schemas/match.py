# schemas/match.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.profile import ProfileRead


class ConversationRead(BaseModel):
    id: int
    match_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MatchRead(BaseModel):
    match_id: int
    conversation_id: int
    created_at: datetime
    profile: ProfileRead


class RankedCandidate(BaseModel):
    candidate_id: int
    score: int = Field(..., ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)


class UserRanking(BaseModel):
    user_id: int
    candidates: List[RankedCandidate]


class RankingBatch(BaseModel):
    """Формат ответа ScoringEngine."""
    rankings: List[UserRanking] = Field(default_factory=list)


class ComputeRequest(BaseModel):
    # None - взять значения из настроек
    batch_size: Optional[int] = Field(None, ge=1, le=1000)
    top_n: Optional[int] = Field(None, ge=1, le=1000)


class ComputeResponse(BaseModel):
    users: int
    entries: int
