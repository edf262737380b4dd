# schemas/profile.py
from typing import Optional, List
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from models.profile import Gender


class ProfileBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=64, description="Никнейм")
    display_name: str = Field(..., min_length=1, max_length=100, description="Отображаемое имя")
    date_of_birth: date = Field(..., description="Дата рождения (YYYY-MM-DD)")
    gender: Gender = Field(..., description="Пол: male, female, non_binary, other")
    looking_for: List[Gender] = Field(..., min_length=1, description="Кого ищет пользователь")
    bio: str = Field("", max_length=2000, description="О себе")
    location: str = Field("", max_length=128)
    nationality: str = Field("", max_length=64)
    interests: List[str] = Field(default_factory=list, description="Теги интересов")
    photos: List[str] = Field(default_factory=list, description="Ссылки на фото по порядку")

    @field_validator("looking_for")
    @classmethod
    def dedupe_genders(cls, value: List[Gender]) -> List[Gender]:
        return list(dict.fromkeys(value))


class ProfileCreate(ProfileBase):
    pass


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=1, max_length=64)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    # Пустой список не пройдёт: активный профиль всегда кого-то ищет
    looking_for: Optional[List[Gender]] = Field(None, min_length=1)
    bio: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=128)
    nationality: Optional[str] = Field(None, max_length=64)
    interests: Optional[List[str]] = None
    photos: Optional[List[str]] = None


class ProfileRead(BaseModel):
    id: int = Field(..., description="user_id владельца профиля")
    username: str
    display_name: str
    date_of_birth: date
    age: int
    gender: Gender
    looking_for: List[Gender]
    bio: str
    location: str
    nationality: str
    interests: List[str]
    photos: List[str]
    is_active: bool
    profile_completeness: int = Field(..., ge=0, le=100)
    last_active: datetime
    created_at: datetime

    class Config:
        from_attributes = True
