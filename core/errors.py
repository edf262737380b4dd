# core/errors.py
"""
Ошибки ядра знакомств.

Все они наследуются от HTTPException, поэтому сервисы могут бросать их
напрямую, а FastAPI сам превращает их в ответ с нужным статусом.
Конфликты уникальности (Conflict) сюда не входят: они гасятся внутри
через INSERT ... ON CONFLICT DO NOTHING и наружу не выходят.
"""
from typing import Optional

from fastapi import HTTPException
from starlette import status


class MatchCoreError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal error"
    retryable: bool = False

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class Unauthorized(MatchCoreError):
    """Вызывающий не участник беседы или действует не от своего имени."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not allowed"


class PreconditionFailed(MatchCoreError):
    """Нет нужного предварительного состояния, например профиля."""
    status_code = status.HTTP_412_PRECONDITION_FAILED
    default_detail = "Profile required"


class InvalidArgument(MatchCoreError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid argument"


class NotFound(MatchCoreError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class RetryableError(MatchCoreError):
    retryable = True
    retry_after_seconds: int = 1

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"Retry-After": str(self.retry_after_seconds)})


class Timeout(RetryableError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_detail = "Operation timed out, retry later"


class Unavailable(RetryableError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage temporarily unavailable, retry later"
    retry_after_seconds = 5
