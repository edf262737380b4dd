"""LikeLedger: направленные лайки, не более одного на упорядоченную пару."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.database import insert_for
from core.errors import InvalidArgument, NotFound
from core.id_generator import generate_random_id
from models.base import utcnow
from models.like import Like
from services.blocks import is_blocked_between
from services.matches import ReciprocityResult, check_reciprocity
from services.profiles import get_active_profile, touch_last_active

logger = logging.getLogger(__name__)


async def record_like(db: AsyncSession, liker_id: int, likee_id: int) -> ReciprocityResult:
    """
    Записывает лайк liker_id → likee_id и сразу проверяет взаимность.

    Повторный лайк не создаёт вторую строку и не считается ошибкой.
    Лайк коммитится до проверки взаимности: если проверка упадёт, лайк
    останется, а повторный вызов (или GET /interactions/mutual) её повторит.
    """
    if liker_id == likee_id:
        raise InvalidArgument("You cannot like yourself")

    await get_active_profile(db, liker_id)
    await get_active_profile(db, likee_id)
    # Для заблокированных пара выглядит так, будто профиля нет
    if await is_blocked_between(db, liker_id, likee_id):
        raise NotFound("Profile not found")

    stmt = (
        insert_for(db, Like)
        .values(
            id=generate_random_id("likes"),
            liker_id=liker_id,
            liked_id=likee_id,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["liker_id", "liked_id"])
    )
    result = await db.execute(stmt)
    await touch_last_active(db, liker_id)
    await db.commit()
    if result.rowcount == 1:
        logger.info("Like %s → %s recorded", liker_id, likee_id)

    return await check_reciprocity(db, liker_id, likee_id)
