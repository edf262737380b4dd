# models/like.py
from sqlalchemy import Column, BigInteger, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Like(Base):
    __tablename__ = "likes"

    id = Column(BigInteger, primary_key=True, index=True)
    liker_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    liked_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)

    liker = relationship("User", foreign_keys=[liker_id], backref="likes_given")
    liked = relationship("User", foreign_keys=[liked_id], backref="likes_received")

    __table_args__ = (
        UniqueConstraint("liker_id", "liked_id", name="uq_like_pair"),
        CheckConstraint("liker_id <> liked_id", name="ck_like_not_self"),
    )

    def __repr__(self):
        return f"<Like {self.liker_id}→{self.liked_id}>"
