from pydantic import BaseModel, Field
from typing import Literal


class LoginSchema(BaseModel):
    """
    Данные от провайдера входа: внешний id пользователя и его
    HMAC-подпись общим секретом.
    """
    external_id: str = Field(..., max_length=128)
    signature: str = Field(..., min_length=64, max_length=64)


class TokenResponse(BaseModel):
    """
    Ответ при успешном логине.
    """
    access_token: str
    token_type: Literal["bearer"]
    has_profile: bool
    expires_in_ms: int
