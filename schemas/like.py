from typing import Optional
from pydantic import BaseModel, Field


class LikeResponse(BaseModel):
    liked: bool = True
    matched: bool
    # True только у того запроса, который создал матч
    new_match: bool = False
    match_id: Optional[int] = None
    conversation_id: Optional[int] = None


class MutualResponse(BaseModel):
    user_id: int
    matched: bool


class BlockRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)
