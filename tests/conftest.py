import os
import tempfile
from datetime import date
from uuid import uuid4

# Настройки читаются при импорте core.config, поэтому окружение - до импортов
_DB_DIR = tempfile.mkdtemp(prefix="match-core-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["AUTH_SHARED_SECRET"] = "test-shared-secret"
os.environ["REALTIME_POLL_SECONDS"] = "0.2"
os.environ["SCORING_ENGINE_URL"] = ""

import pytest  # noqa: E402

from core.database import AsyncSessionLocal, engine  # noqa: E402
from models import Base, User  # noqa: E402
from models.base import utcnow  # noqa: E402
from schemas.profile import ProfileCreate  # noqa: E402
from services.profiles import create_profile  # noqa: E402


@pytest.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(database):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make() -> User:
        user = User(external_id=f"ext-{uuid4().hex}")
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_profile(db, make_user):
    async def _make(gender="male", looking_for=("female",), last_active=None, **fields):
        user = await make_user()
        data = ProfileCreate(
            username=fields.pop("username", f"user{user.id}"),
            display_name=fields.pop("display_name", "Alex"),
            date_of_birth=fields.pop("date_of_birth", date(1995, 5, 17)),
            gender=gender,
            looking_for=list(looking_for),
            **fields,
        )
        profile = await create_profile(db, user, data)
        if last_active is not None:
            profile.last_active = last_active
            await db.commit()
        return profile
    return _make


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
async def matched_pair(db, make_profile):
    """Два профиля с матчем; возвращает (a, b, conversation_id)."""
    from services.likes import record_like

    a = await make_profile(gender="male", looking_for=["female"])
    b = await make_profile(gender="female", looking_for=["male"])
    await record_like(db, a.user_id, b.user_id)
    result = await record_like(db, b.user_id, a.user_id)
    return a, b, result.conversation_id
