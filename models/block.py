# models/block.py
from sqlalchemy import Column, BigInteger, String, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base, UTCDateTime, utcnow


class Block(Base):
    __tablename__ = "blocked_users"

    id = Column(BigInteger, primary_key=True, index=True)
    blocker_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    blocked_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_block_pair"),
    )

    def __repr__(self):
        return f"<Block {self.blocker_id}⊘{self.blocked_id}>"
