"""
Кэш ранжирования для режима precomputed.

Счёт кандидатов считает внешний ScoringEngine; ядро только вызывает его по
контракту compute(batch_size, top_n), проверяет формат ответа и заменяет
строки кэша match_scores для каждого пользователя из ответа.
"""
import asyncio
import logging
from typing import Optional, Protocol

from aiohttp import ClientError, ClientSession, ClientTimeout
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import AsyncSessionLocal, insert_for
from core.errors import Timeout, Unavailable
from core.id_generator import generate_random_id
from models.base import utcnow
from models.match_score import MatchScore
from models.user import User
from schemas.match import ComputeResponse, RankingBatch

logger = logging.getLogger(__name__)


class ScoringEngine(Protocol):
    async def compute(self, batch_size: int, top_n: int) -> RankingBatch:
        ...


class RemoteScoringEngine:
    """ScoringEngine за HTTP: POST {url} {"batchSize", "topN"} → {"rankings": [...]}"""

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url
        self.timeout = timeout or settings.SCORING_TIMEOUT_SECONDS

    async def compute(self, batch_size: int, top_n: int) -> RankingBatch:
        async with ClientSession(timeout=ClientTimeout(total=self.timeout)) as session:
            async with session.post(
                self.url, json={"batchSize": batch_size, "topN": top_n}
            ) as resp:
                resp.raise_for_status()
                payload = await resp.json()
        return RankingBatch.model_validate(payload)


def get_scoring_engine() -> Optional[ScoringEngine]:
    """Зависимость FastAPI; None, если SCORING_ENGINE_URL не задан."""
    if not settings.SCORING_ENGINE_URL:
        return None
    return RemoteScoringEngine(settings.SCORING_ENGINE_URL)


async def store_rankings(db: AsyncSession, batch: RankingBatch) -> int:
    """
    Заменяет кэш для каждого пользователя из batch. Неизвестные id и
    самого пользователя среди кандидатов пропускает. Возвращает число строк.

    Строки пишутся upsert'ом по (user_id, candidate_id), затем удаляются
    кандидаты, которых нет в новом ответе. Два одновременных обновления
    одного пользователя не упираются в уникальный ключ: побеждает последнее.
    """
    mentioned = {r.user_id for r in batch.rankings}
    for ranking in batch.rankings:
        mentioned.update(c.candidate_id for c in ranking.candidates)
    if not mentioned:
        return 0

    res = await db.execute(select(User.id).where(User.id.in_(mentioned)))
    known = {row[0] for row in res.all()}

    stored = 0
    computed_at = utcnow()
    try:
        for ranking in batch.rankings:
            if ranking.user_id not in known:
                continue

            seen = set()
            for candidate in ranking.candidates:
                if candidate.candidate_id == ranking.user_id or candidate.candidate_id not in known:
                    continue
                if candidate.candidate_id in seen:
                    continue
                seen.add(candidate.candidate_id)

                stmt = insert_for(db, MatchScore).values(
                    id=generate_random_id("match_scores"),
                    user_id=ranking.user_id,
                    candidate_id=candidate.candidate_id,
                    score=candidate.score,
                    reasons=candidate.reasons,
                    computed_at=computed_at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["user_id", "candidate_id"],
                    set_={
                        "score": stmt.excluded.score,
                        "reasons": stmt.excluded.reasons,
                        "computed_at": stmt.excluded.computed_at,
                    },
                )
                await db.execute(stmt)
                stored += 1

            await db.execute(
                delete(MatchScore)
                .where(
                    MatchScore.user_id == ranking.user_id,
                    MatchScore.candidate_id.not_in(list(seen)),
                )
                .execution_options(synchronize_session=False)
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return stored


async def refresh_rankings(
    db: AsyncSession,
    engine: ScoringEngine,
    batch_size: Optional[int] = None,
    top_n: Optional[int] = None,
    timeout: Optional[float] = None,
) -> ComputeResponse:
    batch_size = batch_size or settings.SCORING_BATCH_SIZE
    top_n = top_n or settings.SCORING_TOP_N
    timeout = timeout or settings.SCORING_TIMEOUT_SECONDS

    try:
        batch = await asyncio.wait_for(engine.compute(batch_size, top_n), timeout=timeout)
    except asyncio.TimeoutError:
        raise Timeout("Scoring engine timed out, retry later")
    except ClientError as exc:
        logger.warning("Scoring engine request failed: %s", exc)
        raise Unavailable("Scoring engine unavailable, retry later") from exc
    except ValidationError as exc:
        logger.warning("Scoring engine returned malformed rankings: %s", exc)
        raise Unavailable("Scoring engine returned malformed rankings") from exc

    entries = await store_rankings(db, batch)
    logger.info(
        "Ranking cache refreshed: %s users, %s entries (batch=%s, top=%s)",
        len(batch.rankings), entries, batch_size, top_n,
    )
    return ComputeResponse(users=len(batch.rankings), entries=entries)


async def run_refresh_loop(engine: ScoringEngine, interval: Optional[float] = None) -> None:
    """Фоновое обновление кэша с фиксированным периодом, запускается на старте."""
    interval = interval or settings.SCORING_REFRESH_SECONDS
    while True:
        try:
            async with AsyncSessionLocal() as db:
                await refresh_rankings(db, engine)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Ranking cache refresh failed: %s", exc)
        await asyncio.sleep(interval)
