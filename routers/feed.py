from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_db
from core.security import get_current_profile
from models.profile import Profile
from schemas.feed import FeedMode, FeedResponse
from services.feed import build_feed

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get(
    "/",
    response_model=FeedResponse,
    summary="Получить ленту кандидатов"
)
async def get_feed(
    mode: FeedMode = Query(FeedMode.realtime, description="realtime или precomputed"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.FEED_MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
    viewer: Profile = Depends(get_current_profile),
) -> FeedResponse:
    return await build_feed(db, viewer, page=page, limit=limit, mode=mode)
