import asyncio

import pytest
from aiohttp import ClientConnectionError
from sqlalchemy import select

from core.database import AsyncSessionLocal
from core.errors import Timeout, Unavailable
from models.match_score import MatchScore
from schemas.match import RankingBatch
from services.scoring import refresh_rankings


class FakeEngine:
    """ScoringEngine, который отдаёт заранее заданный ответ."""

    def __init__(self, payload=None, error=None, delay=0):
        self.payload = payload or {"rankings": []}
        self.error = error
        self.delay = delay
        self.calls = []

    async def compute(self, batch_size, top_n):
        self.calls.append((batch_size, top_n))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return RankingBatch.model_validate(self.payload)


async def _scores(db, user_id):
    res = await db.execute(
        select(MatchScore.candidate_id, MatchScore.score)
        .where(MatchScore.user_id == user_id)
        .order_by(MatchScore.score.desc())
    )
    return [tuple(row) for row in res.all()]


async def test_refresh_stores_rankings(db, make_profile):
    viewer = await make_profile()
    a = await make_profile(gender="female", looking_for=["male"])
    b = await make_profile(gender="female", looking_for=["male"])

    engine = FakeEngine({"rankings": [{
        "user_id": viewer.user_id,
        "candidates": [
            {"candidate_id": a.user_id, "score": 70, "reasons": ["Same city"]},
            {"candidate_id": b.user_id, "score": 85},
            {"candidate_id": viewer.user_id, "score": 100},
            {"candidate_id": 999, "score": 99},
        ],
    }]})

    result = await refresh_rankings(db, engine, batch_size=10, top_n=5)

    assert engine.calls == [(10, 5)]
    assert result.users == 1
    assert result.entries == 2
    assert await _scores(db, viewer.user_id) == [(b.user_id, 85), (a.user_id, 70)]


async def test_refresh_replaces_previous_rankings(db, make_profile):
    viewer = await make_profile()
    a = await make_profile(gender="female", looking_for=["male"])
    b = await make_profile(gender="female", looking_for=["male"])

    await refresh_rankings(db, FakeEngine({"rankings": [{
        "user_id": viewer.user_id,
        "candidates": [{"candidate_id": a.user_id, "score": 50}],
    }]}))
    await refresh_rankings(db, FakeEngine({"rankings": [{
        "user_id": viewer.user_id,
        "candidates": [{"candidate_id": b.user_id, "score": 60}],
    }]}))

    assert await _scores(db, viewer.user_id) == [(b.user_id, 60)]


async def test_rankings_for_unknown_user_are_skipped(db, make_profile):
    a = await make_profile()

    result = await refresh_rankings(db, FakeEngine({"rankings": [{
        "user_id": 999,
        "candidates": [{"candidate_id": a.user_id, "score": 50}],
    }]}))

    assert result.entries == 0
    assert await _scores(db, 999) == []


async def test_engine_timeout(db):
    with pytest.raises(Timeout):
        await refresh_rankings(db, FakeEngine(delay=1), timeout=0.05)


async def test_engine_connection_error(db):
    with pytest.raises(Unavailable) as exc_info:
        await refresh_rankings(db, FakeEngine(error=ClientConnectionError("refused")))
    assert exc_info.value.headers["Retry-After"] == "5"


async def test_engine_malformed_response(db, make_profile):
    viewer = await make_profile()
    a = await make_profile(gender="female", looking_for=["male"])
    engine = FakeEngine({"rankings": [{
        "user_id": viewer.user_id,
        "candidates": [{"candidate_id": a.user_id, "score": 250}],
    }]})

    with pytest.raises(Unavailable):
        await refresh_rankings(db, engine)
    assert await _scores(db, viewer.user_id) == []


async def test_refresh_keeps_overlapping_candidate_and_updates_score(db, make_profile):
    viewer = await make_profile()
    a = await make_profile(gender="female", looking_for=["male"])
    b = await make_profile(gender="female", looking_for=["male"])

    await refresh_rankings(db, FakeEngine({"rankings": [{
        "user_id": viewer.user_id,
        "candidates": [
            {"candidate_id": a.user_id, "score": 50},
            {"candidate_id": b.user_id, "score": 40},
        ],
    }]}))
    await refresh_rankings(db, FakeEngine({"rankings": [{
        "user_id": viewer.user_id,
        "candidates": [{"candidate_id": a.user_id, "score": 95, "reasons": ["New photos"]}],
    }]}))

    assert await _scores(db, viewer.user_id) == [(a.user_id, 95)]
    reasons = (
        await db.execute(select(MatchScore.reasons).where(MatchScore.user_id == viewer.user_id))
    ).scalar_one()
    assert reasons == ["New photos"]


async def test_overlapping_refreshes_for_same_user(db, make_profile):
    viewer = await make_profile()
    a, b, c = [await make_profile(gender="female", looking_for=["male"]) for _ in range(3)]

    def engine_for(*candidates):
        return FakeEngine({"rankings": [{
            "user_id": viewer.user_id,
            "candidates": [{"candidate_id": p.user_id, "score": 60} for p in candidates],
        }]})

    async def refresh(engine):
        async with AsyncSessionLocal() as session:
            return await refresh_rankings(session, engine)

    first, second = await asyncio.gather(
        refresh(engine_for(a, b, c)),
        refresh(engine_for(b, c)),
    )

    assert first.entries == 3
    assert second.entries == 2
    cached = {candidate for candidate, _ in await _scores(db, viewer.user_id)}
    # Побеждает то обновление, что закоммитилось последним, но целиком
    assert cached in ({a.user_id, b.user_id, c.user_id}, {b.user_id, c.user_id})
