# models/message.py
from sqlalchemy import Column, BigInteger, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime


class Message(Base):
    __tablename__ = "messages"

    id = Column(BigInteger, primary_key=True, index=True)
    conversation_id = Column(
        BigInteger, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    # Проставляется только сервером, см. services/messages.py
    created_at = Column(UTCDateTime, nullable=False)

    conversation = relationship("Conversation", backref="messages")

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at", unique=True),
    )

    def __repr__(self):
        return f"<Message id={self.id} conv={self.conversation_id} from={self.sender_id}>"
