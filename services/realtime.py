"""
RealtimeDispatcher: канал publish/subscribe на каждую беседу.

Подписка хранит курсор - created_at последнего доставленного сообщения.
publish() только будит подписчиков (событие схлопывается и никогда не
блокирует отправителя), а сами сообщения подписка дочитывает из базы
после курсора в порядке created_at. Медленный подписчик получает сообщения
пачкой, а не копит очередь. Раз в REALTIME_POLL_SECONDS подписка читает
базу и без сигнала, так видны сообщения, записанные другими процессами.

Подписка только читает: в MessageBus она ничего не пишет.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Set

from sqlalchemy import select

from core.config import settings
from core.database import AsyncSessionLocal
from core.errors import NotFound
from models.conversation import Conversation
from models.message import Message
from schemas.message import MessageRead

logger = logging.getLogger(__name__)


class Subscription:

    def __init__(
        self,
        dispatcher: "RealtimeDispatcher",
        conversation_id: int,
        cursor: datetime,
    ):
        self.dispatcher = dispatcher
        self.conversation_id = conversation_id
        self.cursor = cursor
        self._wakeup = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self) -> None:
        self._wakeup.set()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._wakeup.set()
        self.dispatcher.unsubscribe(self)

    async def fetch(self) -> List[MessageRead]:
        """Следующая пачка сообщений после курсора; курсор не двигает."""
        async with self.dispatcher.session_factory() as db:
            res = await db.execute(
                select(Message)
                .where(
                    Message.conversation_id == self.conversation_id,
                    Message.created_at > self.cursor,
                )
                .order_by(Message.created_at.asc())
                .limit(self.dispatcher.batch_size)
            )
            return [MessageRead.model_validate(m) for m in res.scalars().all()]

    async def messages(self) -> AsyncIterator[MessageRead]:
        """Поток новых сообщений в порядке записи, пока подписка не закрыта."""
        while not self._closed:
            batch = await self.fetch()
            if batch:
                for message in batch:
                    if self._closed:
                        return
                    self.cursor = message.created_at
                    yield message
                continue

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.dispatcher.poll_seconds)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()

    def __aiter__(self) -> AsyncIterator[MessageRead]:
        return self.messages()


class RealtimeDispatcher:

    def __init__(
        self,
        session_factory=None,
        poll_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.poll_seconds = poll_seconds or settings.REALTIME_POLL_SECONDS
        self.batch_size = batch_size or settings.REALTIME_BATCH_SIZE
        self._subscribers: Dict[int, Set[Subscription]] = defaultdict(set)

    async def subscribe(self, conversation_id: int) -> Subscription:
        """
        Подписка на беседу. Сообщения, записанные до подписки, не
        отдаются: историю клиент берёт отдельно через list.
        """
        async with self.session_factory() as db:
            res = await db.execute(
                select(Conversation.updated_at).where(Conversation.id == conversation_id)
            )
            cursor = res.scalar_one_or_none()
        if cursor is None:
            raise NotFound("Conversation not found")

        subscription = Subscription(self, conversation_id, cursor)
        self._subscribers[conversation_id].add(subscription)
        logger.debug("Subscribed to conversation %s", conversation_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.conversation_id)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.conversation_id]
        if not subscription.closed:
            subscription.close()

    def publish(self, conversation_id: int) -> None:
        for subscription in list(self._subscribers.get(conversation_id, ())):
            subscription.notify()

    def subscriber_count(self, conversation_id: int) -> int:
        return len(self._subscribers.get(conversation_id, ()))


dispatcher = RealtimeDispatcher()
