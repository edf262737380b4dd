# routers/conversations.py
import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import AsyncSessionLocal, get_db
from core.errors import MatchCoreError
from core.security import decode_user_id, get_current_user
from models.user import User
from schemas.message import MessageCreate, MessageRead, ReadReceipt
from services.conversations import get_conversation_for_participant
from services.messages import append_message, list_messages, mark_read
from services.realtime import dispatcher

router = APIRouter(prefix="/conversations", tags=["conversations"])
logger = logging.getLogger("uvicorn.error")


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Отправить сообщение",
)
async def send_message(
    conversation_id: int,
    payload: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageRead:
    # Отправитель - всегда владелец токена
    message = await append_message(db, conversation_id, current_user.id, payload.content)
    return MessageRead.model_validate(message)


@router.get(
    "/{conversation_id}/messages",
    response_model=List[MessageRead],
    summary="История сообщений в порядке отправки",
)
async def get_messages(
    conversation_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[MessageRead]:
    messages = await list_messages(db, conversation_id, current_user.id)
    return [MessageRead.model_validate(m) for m in messages]


@router.post(
    "/{conversation_id}/read",
    response_model=ReadReceipt,
    summary="Отметить сообщения собеседника прочитанными",
)
async def read_messages(
    conversation_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadReceipt:
    marked = await mark_read(db, conversation_id, current_user.id)
    return ReadReceipt(conversation_id=conversation_id, marked=marked)


@router.websocket("/{conversation_id}/ws")
async def conversation_stream(
    websocket: WebSocket,
    conversation_id: int,
    token: str = Query(..., description="JWT, заголовки в WebSocket недоступны"),
):
    """
    Поток новых сообщений беседы. Историю до подключения клиент берёт
    через GET /conversations/{id}/messages.
    """
    user_id = decode_user_id(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    async with AsyncSessionLocal() as db:
        try:
            await get_conversation_for_participant(db, conversation_id, user_id)
        except MatchCoreError as exc:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
            return

    # Подписка до accept: всё, что отправлено после открытия сокета, дойдёт
    subscription = await dispatcher.subscribe(conversation_id)
    try:
        await websocket.accept()
    except Exception:
        subscription.close()
        raise

    async def pump():
        async for message in subscription:
            await websocket.send_json(message.model_dump(mode="json"))

    async def wait_disconnect():
        # Клиент ничего не шлёт; ждём только закрытия
        while True:
            await websocket.receive_text()

    sender = asyncio.create_task(pump())
    receiver = asyncio.create_task(wait_disconnect())
    try:
        done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Realtime stream %s failed: %s", conversation_id, exc)
    finally:
        subscription.close()
        sender.cancel()
        receiver.cancel()
        await asyncio.gather(sender, receiver, return_exceptions=True)
