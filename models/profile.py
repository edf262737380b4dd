# models/profile.py
import enum
from typing import Iterable, List

from sqlalchemy import (
    Column, BigInteger, Integer, String, Date, Text, Boolean, ForeignKey, JSON, Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Gender(str, enum.Enum):
    male = "male"
    female = "female"
    non_binary = "non_binary"
    other = "other"


# Битовые флаги для looking_for: фильтр ленты проверяет их прямо в SQL
GENDER_BITS = {
    Gender.male: 1,
    Gender.female: 2,
    Gender.non_binary: 4,
    Gender.other: 8,
}


def genders_to_mask(genders: Iterable[Gender]) -> int:
    mask = 0
    for gender in genders:
        mask |= GENDER_BITS[Gender(gender)]
    return mask


def mask_to_genders(mask: int) -> List[Gender]:
    return [gender for gender, bit in GENDER_BITS.items() if mask & bit]


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(BigInteger, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    username = Column(String(64), nullable=False)
    display_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(16), nullable=False)
    looking_for_mask = Column(Integer, nullable=False, default=0)
    bio = Column(Text, nullable=False, default="")
    location = Column(String(128), nullable=False, default="")
    nationality = Column(String(64), nullable=False, default="")
    interests = Column(JSON, nullable=False, default=list)
    photos = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    last_active = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    user = relationship("User", back_populates="profile", uselist=False)

    __table_args__ = (
        Index("ix_profiles_active_last_active", "is_active", "last_active"),
    )

    @property
    def looking_for(self) -> List[Gender]:
        return mask_to_genders(self.looking_for_mask or 0)

    @looking_for.setter
    def looking_for(self, genders: Iterable[Gender]) -> None:
        self.looking_for_mask = genders_to_mask(genders)

    def __repr__(self):
        return f"<Profile user_id={self.user_id} gender={self.gender} active={self.is_active}>"
