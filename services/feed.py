"""
DiscoveryFeedBuilder: лента кандидатов в двух режимах.

realtime    - активные профили по убыванию last_active, считается на запрос;
precomputed - кэш ранжирования от ScoringEngine (match_scores), который
              при чтении заново проходит тот же фильтр допустимости.

Кэш может устареть, но выдача - нет: лайкнутые, заблокированные,
выключенные и не подходящие по полу кандидаты отсекаются при каждом чтении.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import select, func, not_
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import Timeout
from models.like import Like
from models.match_score import MatchScore
from models.profile import Gender, GENDER_BITS, Profile
from schemas.feed import FeedEntry, FeedMode, FeedResponse
from services.blocks import blocked_ids_subqueries
from utils.profile_helpers import to_profile_read

logger = logging.getLogger(__name__)


def eligibility_conditions(viewer: Profile) -> list:
    """
    Условия на Profile кандидата для ленты viewer.

    Взаимный фильтр по полу проверяется в обе стороны отдельно:
    кандидат ищет пол зрителя И зритель ищет пол кандидата.
    Тот, кто лайкнул зрителя, но не получил лайк в ответ, остаётся в ленте.
    """
    viewer_bit = GENDER_BITS[Gender(viewer.gender)]
    sought = [gender.value for gender in viewer.looking_for]
    liked_by_viewer = select(Like.liked_id).where(Like.liker_id == viewer.user_id)
    blocked_by_viewer, blocked_viewer = blocked_ids_subqueries(viewer.user_id)

    return [
        Profile.is_active.is_(True),
        Profile.user_id != viewer.user_id,
        not_(Profile.user_id.in_(liked_by_viewer)),
        not_(Profile.user_id.in_(blocked_by_viewer)),
        not_(Profile.user_id.in_(blocked_viewer)),
        Profile.looking_for_mask.op("&")(viewer_bit) != 0,
        Profile.gender.in_(sought),
    ]


async def _realtime_feed(db: AsyncSession, viewer: Profile, page: int, limit: int) -> FeedResponse:
    conditions = eligibility_conditions(viewer)

    total = (
        await db.execute(select(func.count(Profile.id)).where(*conditions))
    ).scalar_one()

    stmt = (
        select(Profile)
        .where(*conditions)
        .order_by(Profile.last_active.desc(), Profile.user_id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    profiles = (await db.execute(stmt)).scalars().all()

    entries = [
        FeedEntry(id=p.user_id, score=None, reasons=[], profile=to_profile_read(p))
        for p in profiles
    ]
    return FeedResponse(matches=entries, page=page, limit=limit, total=total, mode=FeedMode.realtime)


async def _precomputed_feed(db: AsyncSession, viewer: Profile, page: int, limit: int) -> FeedResponse:
    conditions = eligibility_conditions(viewer)
    joined = (
        select(MatchScore, Profile)
        .join(Profile, Profile.user_id == MatchScore.candidate_id)
        .where(MatchScore.user_id == viewer.user_id, *conditions)
    )

    total = (
        await db.execute(select(func.count()).select_from(joined.subquery()))
    ).scalar_one()

    stmt = (
        joined
        .order_by(MatchScore.score.desc(), Profile.last_active.desc(), Profile.user_id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    entries = [
        FeedEntry(
            id=profile.user_id,
            score=score.score,
            reasons=list(score.reasons or []),
            profile=to_profile_read(profile),
        )
        for score, profile in rows
    ]
    return FeedResponse(matches=entries, page=page, limit=limit, total=total, mode=FeedMode.precomputed)


async def build_feed(
    db: AsyncSession,
    viewer: Profile,
    page: int = 1,
    limit: int = 20,
    mode: FeedMode = FeedMode.realtime,
    timeout: Optional[float] = None,
) -> FeedResponse:
    """
    Лента для viewer. Параметры страницы и режим приходят с каждым
    запросом, общего состояния настроек нет. Сборка дольше timeout
    заканчивается повторяемой ошибкой Timeout.
    """
    if mode == FeedMode.precomputed:
        builder = _precomputed_feed(db, viewer, page, limit)
    else:
        builder = _realtime_feed(db, viewer, page, limit)

    timeout = timeout or settings.FEED_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(builder, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Feed build for user %s (%s) exceeded %.1fs", viewer.user_id, mode.value, timeout
        )
        raise Timeout("Feed build timed out, retry later")
