# models/user.py
from sqlalchemy import Column, BigInteger, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base, UTCDateTime, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, index=True)
    external_id = Column(String(128), unique=True, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)

    profile = relationship("Profile", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User id={self.id} external_id={self.external_id}>"
