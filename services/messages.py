"""MessageBus: упорядоченный журнал сообщений беседы."""
import logging
from datetime import timedelta
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import InvalidArgument, Unauthorized, Unavailable
from models.base import utcnow
from models.conversation import Conversation
from models.message import Message
from services.blocks import is_blocked_between
from services.conversations import get_conversation_for_participant
from services.profiles import touch_last_active
from services.realtime import RealtimeDispatcher, dispatcher as default_dispatcher

logger = logging.getLogger(__name__)

CLOCK_TICK = timedelta(microseconds=1)
CLOCK_ATTEMPTS = 10


async def _claim_timestamp(db: AsyncSession, conversation_id: int):
    """
    Выдаёт следующую метку времени беседы.

    Метка = max(now, updated_at + 1 мкс) и занимается условным UPDATE
    (updated_at < метки). Если другой отправитель успел раньше, UPDATE
    не затронет строку, и попытка повторяется со свежим updated_at.
    Метки внутри беседы строго возрастают без внешних блокировок.
    """
    for _ in range(CLOCK_ATTEMPTS):
        res = await db.execute(
            select(Conversation.updated_at).where(Conversation.id == conversation_id)
        )
        last = res.scalar_one()
        ts = max(utcnow(), last + CLOCK_TICK)
        claimed = await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id, Conversation.updated_at < ts)
            .values(updated_at=ts)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 1:
            return ts
    raise Unavailable("Conversation is busy, retry later")


async def append_message(
    db: AsyncSession,
    conversation_id: int,
    sender_id: int,
    content: str,
    realtime: RealtimeDispatcher = default_dispatcher,
) -> Message:
    """
    Добавляет сообщение от имени участника беседы.
    Сообщение и сдвиг updated_at беседы пишутся одной транзакцией,
    подписчики оповещаются только после коммита.
    """
    # Сначала право писать в беседу, потом содержимое
    conversation, match = await get_conversation_for_participant(db, conversation_id, sender_id)

    content = (content or "").strip()
    if not content:
        raise InvalidArgument("Message content is empty")
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise InvalidArgument(f"Message is longer than {settings.MESSAGE_MAX_LENGTH} characters")

    if await is_blocked_between(db, match.user1_id, match.user2_id):
        raise Unauthorized("Conversation is blocked")

    try:
        created_at = await _claim_timestamp(db, conversation.id)
        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            content=content,
            read=False,
            created_at=created_at,
        )
        db.add(message)
        await touch_last_active(db, sender_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    realtime.publish(conversation.id)
    return message


async def list_messages(db: AsyncSession, conversation_id: int, requester_id: int) -> List[Message]:
    """Все сообщения беседы в порядке создания."""
    conversation, _ = await get_conversation_for_participant(db, conversation_id, requester_id)
    res = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation.id)
        .order_by(Message.created_at.asc())
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def mark_read(db: AsyncSession, conversation_id: int, reader_id: int) -> int:
    """Отмечает прочитанными сообщения собеседника; свои не трогает."""
    conversation, _ = await get_conversation_for_participant(db, conversation_id, reader_id)
    res = await db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation.id,
            Message.sender_id != reader_id,
            Message.read.is_(False),
        )
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount
