# routers/match.py

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.errors import Unavailable
from core.security import get_current_profile
from models.profile import Profile
from schemas.match import ComputeRequest, ComputeResponse, ConversationRead, MatchRead
from services.conversations import open_conversation
from services.matches import list_matches
from services.scoring import ScoringEngine, get_scoring_engine, refresh_rankings

router = APIRouter(prefix="/matches", tags=["matches"])


@router.get(
    "/",
    response_model=List[MatchRead],
    summary="Список пользователей, с которыми у вас совпадения"
)
async def get_my_matches(
    db: AsyncSession = Depends(get_db),
    me: Profile = Depends(get_current_profile),
) -> List[MatchRead]:
    return await list_matches(db, me.user_id)


@router.post(
    "/{match_id}/conversation",
    response_model=ConversationRead,
    summary="Открыть беседу матча (создаётся при первом обращении)",
)
async def open_match_conversation(
    match_id: int,
    db: AsyncSession = Depends(get_db),
    me: Profile = Depends(get_current_profile),
) -> ConversationRead:
    conversation = await open_conversation(db, match_id, me.user_id)
    return ConversationRead.model_validate(conversation)


@router.post(
    "/compute",
    response_model=ComputeResponse,
    summary="Запустить пересчёт кэша ранжирования во внешнем ScoringEngine",
)
async def compute_matches(
    payload: ComputeRequest,
    db: AsyncSession = Depends(get_db),
    me: Profile = Depends(get_current_profile),
    engine: Optional[ScoringEngine] = Depends(get_scoring_engine),
) -> ComputeResponse:
    if engine is None:
        raise Unavailable("Scoring engine is not configured")
    return await refresh_rankings(db, engine, batch_size=payload.batch_size, top_n=payload.top_n)
