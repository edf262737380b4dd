# routers/profile.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.errors import PreconditionFailed
from core.security import get_current_user
from models.user import User
from schemas.profile import ProfileCreate, ProfileRead, ProfileUpdate
from services.profiles import create_profile, get_profile, set_active, update_profile
from utils.profile_helpers import to_profile_read

router = APIRouter(prefix="/profile", tags=["profile"])


async def _my_profile(db: AsyncSession, user: User):
    profile = await get_profile(db, user.id)
    if not profile:
        raise PreconditionFailed("Create a profile first")
    return profile


@router.post(
    "/",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Создать свой профиль",
)
async def create_my_profile(
    payload: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileRead:
    profile = await create_profile(db, current_user, payload)
    return to_profile_read(profile)


@router.get("/me", response_model=ProfileRead, summary="Получить свой профиль")
async def read_my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileRead:
    return to_profile_read(await _my_profile(db, current_user))


@router.patch("/me", response_model=ProfileRead, summary="Обновить свой профиль")
async def update_my_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileRead:
    profile = await _my_profile(db, current_user)
    return to_profile_read(await update_profile(db, profile, payload))


@router.post("/me/deactivate", response_model=ProfileRead, summary="Скрыть профиль")
async def deactivate_my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileRead:
    profile = await _my_profile(db, current_user)
    return to_profile_read(await set_active(db, profile, False))


@router.post("/me/activate", response_model=ProfileRead, summary="Вернуть профиль в ленту")
async def activate_my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileRead:
    profile = await _my_profile(db, current_user)
    return to_profile_read(await set_active(db, profile, True))
