"""ProfileStore: чтение и изменение профилей владельцем."""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidArgument, NotFound
from models.base import utcnow
from models.profile import Profile
from models.user import User
from schemas.profile import ProfileCreate, ProfileUpdate

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, user_id: int) -> Optional[Profile]:
    res = await db.execute(select(Profile).where(Profile.user_id == user_id))
    return res.scalar_one_or_none()


async def get_active_profile(db: AsyncSession, user_id: int) -> Profile:
    """Активный профиль или NotFound: отсутствующий и выключенный неразличимы."""
    profile = await get_profile(db, user_id)
    if not profile or not profile.is_active:
        raise NotFound("Profile not found")
    return profile


async def create_profile(db: AsyncSession, user: User, data: ProfileCreate) -> Profile:
    if await get_profile(db, user.id):
        raise InvalidArgument("Profile already exists")

    profile = Profile(
        user_id=user.id,
        username=data.username,
        display_name=data.display_name,
        date_of_birth=data.date_of_birth,
        gender=data.gender.value,
        bio=data.bio,
        location=data.location,
        nationality=data.nationality,
        interests=data.interests,
        photos=data.photos,
        is_active=True,
    )
    profile.looking_for = data.looking_for
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    logger.info("Profile created for user %s", user.id)
    return profile


async def update_profile(db: AsyncSession, profile: Profile, data: ProfileUpdate) -> Profile:
    changes = data.model_dump(exclude_unset=True)
    for field in ("username", "display_name", "date_of_birth", "gender", "looking_for"):
        if field in changes and changes[field] is None:
            raise InvalidArgument(f"Field '{field}' cannot be null")

    if "looking_for" in changes:
        profile.looking_for = changes.pop("looking_for")
    if "gender" in changes:
        profile.gender = changes.pop("gender").value
    for field, value in changes.items():
        if value is None:
            value = [] if field in ("interests", "photos") else ""
        setattr(profile, field, value)

    await db.commit()
    await db.refresh(profile)
    return profile


async def set_active(db: AsyncSession, profile: Profile, is_active: bool) -> Profile:
    """Профили не удаляются, только выключаются флагом активности."""
    if is_active and not profile.looking_for_mask:
        raise InvalidArgument("Set looking_for before activating the profile")
    profile.is_active = is_active
    await db.commit()
    await db.refresh(profile)
    logger.info("Profile of user %s is_active=%s", profile.user_id, is_active)
    return profile


async def touch_last_active(db: AsyncSession, user_id: int) -> None:
    """Обновляет last_active в текущей транзакции, коммит за вызывающим."""
    await db.execute(
        update(Profile)
        .where(Profile.user_id == user_id)
        .values(last_active=utcnow())
        .execution_options(synchronize_session=False)
    )
