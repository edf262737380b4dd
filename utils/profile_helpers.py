"""Утилиты для преобразования профилей в схемы Pydantic."""
from datetime import date
from typing import Optional

from models.profile import Profile
from schemas.profile import ProfileRead

# Вес каждого поля в заполненности профиля, в сумме 100
COMPLETENESS_WEIGHTS = {
    "display_name": 10,
    "date_of_birth": 10,
    "gender": 10,
    "looking_for": 10,
    "bio": 20,
    "location": 10,
    "interests": 15,
    "photos": 15,
}


def calculate_age(birthdate: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    years = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        years -= 1
    return max(years, 0)


def profile_completeness(profile: Profile) -> int:
    """Заполненность профиля 0-100, считается на лету и нигде не хранится."""
    filled = {
        "display_name": bool(profile.display_name and profile.display_name.strip()),
        "date_of_birth": profile.date_of_birth is not None,
        "gender": bool(profile.gender),
        "looking_for": bool(profile.looking_for_mask),
        "bio": bool(profile.bio and profile.bio.strip()),
        "location": bool(profile.location and profile.location.strip()),
        "interests": bool(profile.interests),
        "photos": bool(profile.photos),
    }
    return sum(weight for field, weight in COMPLETENESS_WEIGHTS.items() if filled[field])


def to_profile_read(profile: Profile) -> ProfileRead:
    """Сконвертировать модель профиля в ProfileRead."""
    return ProfileRead(
        id=profile.user_id,
        username=profile.username,
        display_name=profile.display_name,
        date_of_birth=profile.date_of_birth,
        age=calculate_age(profile.date_of_birth),
        gender=profile.gender,
        looking_for=profile.looking_for,
        bio=profile.bio or "",
        location=profile.location or "",
        nationality=profile.nationality or "",
        interests=list(profile.interests or []),
        photos=list(profile.photos or []),
        is_active=profile.is_active,
        profile_completeness=profile_completeness(profile),
        last_active=profile.last_active,
        created_at=profile.created_at,
    )
