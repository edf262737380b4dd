"""ConversationRegistry: ровно одна беседа на матч."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import insert_for
from core.errors import NotFound, Unauthorized
from core.id_generator import generate_random_id
from models.base import utcnow
from models.conversation import Conversation
from models.match import Match

logger = logging.getLogger(__name__)


async def get_conversation_by_match(db: AsyncSession, match_id: int) -> Optional[Conversation]:
    res = await db.execute(select(Conversation).where(Conversation.match_id == match_id))
    return res.scalar_one_or_none()


async def ensure_conversation(db: AsyncSession, match_id: int) -> Conversation:
    """
    Возвращает беседу матча, создавая её при первом обращении.

    Создание - это INSERT ... ON CONFLICT (match_id) DO NOTHING и чтение
    строки после него, поэтому параллельные вызовы получают один и тот же id.
    """
    conversation = await get_conversation_by_match(db, match_id)
    if conversation:
        return conversation

    if not await db.get(Match, match_id):
        raise NotFound("Match not found")

    now = utcnow()
    stmt = (
        insert_for(db, Conversation)
        .values(
            id=generate_random_id("conversations"),
            match_id=match_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["match_id"])
    )
    result = await db.execute(stmt)
    await db.commit()
    if result.rowcount == 1:
        logger.info("Conversation created for match %s", match_id)

    conversation = await get_conversation_by_match(db, match_id)
    if conversation is None:
        # Матч удалили между вставкой и чтением
        raise NotFound("Match not found")
    return conversation


async def open_conversation(db: AsyncSession, match_id: int, user_id: int) -> Conversation:
    """ensure_conversation от имени участника матча."""
    match = await db.get(Match, match_id)
    if not match:
        raise NotFound("Match not found")
    if user_id not in match.participants():
        raise Unauthorized("You are not part of this match")
    return await ensure_conversation(db, match_id)


async def get_conversation_for_participant(
    db: AsyncSession, conversation_id: int, user_id: int
) -> tuple[Conversation, Match]:
    """Беседа и её матч; NotFound для неизвестной беседы, Unauthorized для чужой."""
    res = await db.execute(
        select(Conversation, Match)
        .join(Match, Match.id == Conversation.match_id)
        .where(Conversation.id == conversation_id)
    )
    row = res.first()
    if row is None:
        raise NotFound("Conversation not found")
    conversation, match = row
    if user_id not in match.participants():
        raise Unauthorized("You are not a participant of this conversation")
    return conversation, match
