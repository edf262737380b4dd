# models/conversation.py
from sqlalchemy import Column, BigInteger, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(BigInteger, primary_key=True, index=True)
    match_id = Column(BigInteger, ForeignKey("matches.id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    # Часы беседы: равны created_at последнего сообщения
    updated_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)

    match = relationship("Match", back_populates="conversation")

    def __repr__(self):
        return f"<Conversation id={self.id} match={self.match_id}>"
