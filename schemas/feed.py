# schemas/feed.py
import enum
from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.profile import ProfileRead


class FeedMode(str, enum.Enum):
    realtime = "realtime"
    precomputed = "precomputed"


class FeedEntry(BaseModel):
    id: int = Field(..., description="user_id кандидата")
    score: Optional[int] = Field(None, ge=0, le=100, description="Только в режиме precomputed")
    reasons: List[str] = Field(default_factory=list)
    profile: ProfileRead


class FeedResponse(BaseModel):
    matches: List[FeedEntry]
    page: int
    limit: int
    total: int
    mode: FeedMode
