# routers/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.security import create_access_token, verify_login
from core.database import get_db
from models.profile import Profile
from models.user import User
from schemas.auth import TokenResponse, LoginSchema

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/",
    response_model=TokenResponse,
    summary="Вход по подписанному external_id провайдера → выдаёт JWT"
)
async def login(
    payload: LoginSchema,
    db: AsyncSession = Depends(get_db),
):
    external_id = verify_login(payload.external_id, payload.signature)

    stmt = select(User).where(User.external_id == external_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user:
        user = User(external_id=external_id)
        db.add(user)
        await db.commit()
        await db.refresh(user)

    access_token, expires = create_access_token(user.id)
    expires_ms = int(expires.timestamp() * 1000)

    res = await db.execute(select(Profile.id).where(Profile.user_id == user.id))
    has_profile = res.first() is not None

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        has_profile=has_profile,
        expires_in_ms=expires_ms
    )
