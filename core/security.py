# core/security.py
import hmac
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from core.config import settings
from core.database import get_db
from core.errors import PreconditionFailed
from models.profile import Profile
from models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth")

ALGORITHM = "HS256"


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> tuple[str, datetime]:
    """Выпускает JWT для пользователя; возвращает токен и момент истечения."""
    minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expires = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    token = jwt.encode(
        {"user_id": user_id, "exp": expires},
        settings.SECRET_KEY,
        algorithm=ALGORITHM,
    )
    return token, expires


def decode_user_id(token: str) -> Optional[int]:
    """user_id из токена или None, если токен невалиден или просрочен."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        return None
    return user_id


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_user_id(token)
    if user_id is None:
        raise credentials_exception

    user = await db.get(User, user_id)
    if not user:
        raise credentials_exception
    return user


async def get_current_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    Активный профиль вызывающего. Отсутствие профиля и деактивированный
    профиль - терминальные предусловия, а не ошибки для повтора.
    """
    res = await db.execute(select(Profile).where(Profile.user_id == current_user.id))
    profile = res.scalar_one_or_none()
    if not profile:
        raise PreconditionFailed("Create a profile first")
    if not profile.is_active:
        raise PreconditionFailed("Profile is deactivated")
    return profile


def sign_external_id(external_id: str, secret: Optional[str] = None) -> str:
    """HMAC-SHA256 подпись внешнего идентификатора, выданного провайдером входа."""
    key = (secret or settings.AUTH_SHARED_SECRET).encode("utf-8")
    return hmac.new(
        key=key,
        msg=external_id.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_login(external_id: str, signature: str) -> str:
    """
    Проверяет подпись провайдера входа и возвращает external_id.
    Бросает HTTPException(400) на пустой id и (403) на неверную подпись.
    """
    external_id = external_id.strip()
    if not external_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing external_id",
        )

    computed = sign_external_id(external_id)
    if not hmac.compare_digest(computed, signature):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid login signature",
        )
    return external_id
