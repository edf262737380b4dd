# routers/health.py
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from services.realtime import dispatcher

router = APIRouter()


@router.get("/health", summary="Health check")
async def healthcheck(db: AsyncSession = Depends(get_db)):
    # OperationalError отсюда превращается в 503 общим обработчиком
    await db.execute(text("SELECT 1"))
    return {"status": "ok", "realtime_poll_seconds": dispatcher.poll_seconds}
