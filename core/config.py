from typing import Optional

from pydantic.v1 import BaseSettings


class Settings(BaseSettings):

    DATABASE_URL: str
    SECRET_KEY: str
    AUTH_SHARED_SECRET: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    DEBUG: bool = False

    FEED_TIMEOUT_SECONDS: float = 5.0
    FEED_MAX_LIMIT: int = 50
    MESSAGE_MAX_LENGTH: int = 4000

    REALTIME_POLL_SECONDS: float = 2.0
    REALTIME_BATCH_SIZE: int = 100

    # Внешний ScoringEngine; без URL периодическое обновление не запускается
    SCORING_ENGINE_URL: Optional[str] = None
    SCORING_REFRESH_SECONDS: int = 900
    SCORING_BATCH_SIZE: int = 50
    SCORING_TOP_N: int = 100
    SCORING_TIMEOUT_SECONDS: float = 30.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Создаём глобальный объект, который будем импортировать везде
settings = Settings()
