import logging
from typing import Optional

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import insert_for
from core.errors import InvalidArgument, NotFound
from core.id_generator import generate_random_id
from models.base import utcnow
from models.block import Block
from services.profiles import get_profile

logger = logging.getLogger(__name__)


async def is_blocked_between(db: AsyncSession, a: int, b: int) -> bool:
    """Есть ли блокировка в любую сторону между двумя пользователями."""
    res = await db.execute(
        select(Block.id).where(
            or_(
                and_(Block.blocker_id == a, Block.blocked_id == b),
                and_(Block.blocker_id == b, Block.blocked_id == a),
            )
        ).limit(1)
    )
    return res.first() is not None


def blocked_ids_subqueries(user_id: int):
    """Подзапросы id, которых заблокировал пользователь и которые заблокировали его."""
    blocked_by_me = select(Block.blocked_id).where(Block.blocker_id == user_id)
    blocked_me = select(Block.blocker_id).where(Block.blocked_id == user_id)
    return blocked_by_me, blocked_me


async def block_user(
    db: AsyncSession, blocker_id: int, blocked_id: int, reason: Optional[str] = None
) -> bool:
    """Идемпотентно блокирует пользователя. True, если блокировка создана сейчас."""
    if blocker_id == blocked_id:
        raise InvalidArgument("You cannot block yourself")
    if not await get_profile(db, blocked_id):
        raise NotFound("Profile not found")

    stmt = (
        insert_for(db, Block)
        .values(
            id=generate_random_id("blocked_users"),
            blocker_id=blocker_id,
            blocked_id=blocked_id,
            reason=reason,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["blocker_id", "blocked_id"])
    )
    result = await db.execute(stmt)
    await db.commit()
    created = result.rowcount == 1
    if created:
        logger.info("User %s blocked %s", blocker_id, blocked_id)
    return created
