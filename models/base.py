from datetime import datetime, timezone

from sqlalchemy import DateTime, event
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from core.id_generator import generate_random_id

# Общий Base для всех моделей
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    DateTime(timezone=True), который всегда отдаёт aware-время в UTC.
    SQLite теряет tzinfo при чтении, PostgreSQL - нет; сравнивать их
    значения в Python без этого нельзя.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


@event.listens_for(Base, "before_insert", propagate=True)
def assign_random_id(mapper, connection, target):
    if getattr(target, "id", None) is None:
        entity = target.__tablename__
        target.id = generate_random_id(entity)
