from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import get_current_profile
from models.profile import Profile
from schemas.like import BlockRequest, LikeResponse, MutualResponse
from services.blocks import block_user
from services.likes import record_like
from services.matches import check_reciprocity

router = APIRouter(prefix="/interactions", tags=["interactions"])

@router.post(
    "/like/{user_id}",
    response_model=LikeResponse,
    summary="Поставить лайк и узнать, образовался ли матч",
)
async def like_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    me: Profile = Depends(get_current_profile),
) -> LikeResponse:
    # Лайкающий - всегда владелец токена
    result = await record_like(db, me.user_id, user_id)
    return LikeResponse(
        liked=True,
        matched=result.matched,
        new_match=result.created,
        match_id=result.match_id,
        conversation_id=result.conversation_id,
    )


@router.get(
    "/mutual/{user_id}",
    response_model=MutualResponse,
    summary="Проверить взаимный лайк с пользователем",
)
async def mutual_match(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    me: Profile = Depends(get_current_profile),
) -> MutualResponse:
    result = await check_reciprocity(db, me.user_id, user_id)
    return MutualResponse(user_id=user_id, matched=result.matched)


@router.post(
    "/block/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Заблокировать пользователя",
)
async def block(
    user_id: int,
    payload: Optional[BlockRequest] = None,
    db: AsyncSession = Depends(get_db),
    me: Profile = Depends(get_current_profile),
):
    reason = payload.reason if payload else None
    await block_user(db, me.user_id, user_id, reason)
    return
