"""MatchDetector: взаимные лайки превращаются в матч ровно один раз."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, func, or_, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import insert_for
from core.id_generator import generate_random_id
from models.base import utcnow
from models.conversation import Conversation
from models.like import Like
from models.match import Match
from models.profile import Profile
from schemas.match import MatchRead
from services.blocks import is_blocked_between
from services.conversations import ensure_conversation
from utils.profile_helpers import to_profile_read

logger = logging.getLogger(__name__)


@dataclass
class ReciprocityResult:
    matched: bool
    # True только у вызова, который сам вставил строку матча
    created: bool = False
    match_id: Optional[int] = None
    conversation_id: Optional[int] = None


def normalize_pair(a: int, b: int) -> tuple[int, int]:
    u1, u2 = sorted((a, b))
    return u1, u2


async def get_match(db: AsyncSession, a: int, b: int) -> Optional[Match]:
    u1, u2 = normalize_pair(a, b)
    res = await db.execute(
        select(Match).where(Match.user1_id == u1, Match.user2_id == u2)
    )
    return res.scalar_one_or_none()


async def likes_are_mutual(db: AsyncSession, a: int, b: int) -> bool:
    res = await db.execute(
        select(func.count(Like.id)).where(
            or_(
                and_(Like.liker_id == a, Like.liked_id == b),
                and_(Like.liker_id == b, Like.liked_id == a),
            )
        )
    )
    return res.scalar_one() == 2


async def _both_active(db: AsyncSession, a: int, b: int) -> bool:
    res = await db.execute(
        select(func.count(Profile.id)).where(
            Profile.user_id.in_((a, b)),
            Profile.is_active.is_(True),
        )
    )
    return res.scalar_one() == 2


async def check_reciprocity(db: AsyncSession, a: int, b: int) -> ReciprocityResult:
    """
    Проверяет, что лайки (a→b) и (b→a) существуют, и создаёт матч, если его
    ещё нет.

    Уже существующий матч всегда возвращается как matched, даже если один из
    пользователей с тех пор выключил профиль. Новый матч создаётся только
    между активными профилями без блокировки между ними.

    Создание - атомарный INSERT ... ON CONFLICT DO NOTHING по уникальной паре
    (user1_id, user2_id): из двух одновременных проверок строку вставит одна,
    вторая прочитает уже созданный матч и тоже вернёт matched.
    """
    if a == b:
        return ReciprocityResult(matched=False)

    match = await get_match(db, a, b)
    if match:
        conversation = await ensure_conversation(db, match.id)
        return ReciprocityResult(
            matched=True, created=False, match_id=match.id, conversation_id=conversation.id
        )

    if not await likes_are_mutual(db, a, b):
        return ReciprocityResult(matched=False)
    if not await _both_active(db, a, b) or await is_blocked_between(db, a, b):
        return ReciprocityResult(matched=False)

    u1, u2 = normalize_pair(a, b)
    stmt = (
        insert_for(db, Match)
        .values(
            id=generate_random_id("matches"),
            user1_id=u1,
            user2_id=u2,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["user1_id", "user2_id"])
    )
    result = await db.execute(stmt)
    await db.commit()
    created = result.rowcount == 1

    match = await get_match(db, a, b)
    conversation = await ensure_conversation(db, match.id)
    if created:
        logger.info("Match %s created for users %s and %s", match.id, u1, u2)
    return ReciprocityResult(
        matched=True, created=created, match_id=match.id, conversation_id=conversation.id
    )


async def list_matches(db: AsyncSession, user_id: int) -> List[MatchRead]:
    """Матчи пользователя с профилем собеседника и id беседы, новые сверху."""
    other_id = case((Match.user1_id == user_id, Match.user2_id), else_=Match.user1_id)
    stmt = (
        select(Match, Profile, Conversation.id)
        .join(Profile, Profile.user_id == other_id)
        .outerjoin(Conversation, Conversation.match_id == Match.id)
        .where(or_(Match.user1_id == user_id, Match.user2_id == user_id))
        .order_by(Match.created_at.desc())
    )
    rows = (await db.execute(stmt)).all()

    out: List[MatchRead] = []
    for match, profile, conversation_id in rows:
        if conversation_id is None:
            # Матч без беседы: досоздаём, как при первом открытии
            conversation_id = (await ensure_conversation(db, match.id)).id
        out.append(MatchRead(
            match_id=match.id,
            conversation_id=conversation_id,
            created_at=match.created_at,
            profile=to_profile_read(profile),
        ))
    return out
