# schemas/message.py
from datetime import datetime

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    content: str = Field(..., description="Текст сообщения")


class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ReadReceipt(BaseModel):
    conversation_id: int
    marked: int
