import asyncio
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from core.database import engine
from core.errors import Unavailable
from models import Base

from routers.auth import router as auth_router
from routers.profile import router as profile_router
from routers.feed import router as feed_router
from routers.interactions import router as interactions_router
from routers.match import router as match_router
from routers.conversations import router as conversations_router
from routers.health import router as health_router

from services.scoring import get_scoring_engine, run_refresh_loop

app = FastAPI(
    title="Match Core Backend",
    version="0.1.0",
    description="Ядро знакомств: лента, лайки, матчи, беседы и realtime-доставка сообщений"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger("uvicorn.error")

_refresh_task: Optional[asyncio.Task] = None


@app.middleware("http")
async def log_request_time(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = (time.perf_counter() - start_time) * 1000
    logger.info(
        f"{request.method} {request.url.path} completed in {process_time:.2f} ms"
    )
    return response


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def storage_unavailable(request: Request, exc: Exception):
    logger.warning("Storage error on %s %s: %s", request.method, request.url.path, exc)
    error = Unavailable()
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.detail},
        headers=error.headers,
    )


app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(feed_router)
app.include_router(interactions_router)
app.include_router(match_router)
app.include_router(conversations_router)
app.include_router(health_router)


@app.on_event("startup")
async def on_startup():
    global _refresh_task

    # Сначала создаём все таблицы
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scoring_engine = get_scoring_engine()
    if scoring_engine is not None:
        _refresh_task = asyncio.create_task(run_refresh_loop(scoring_engine))


@app.get("/")
async def root():
    return {"message": "Match Core Backend"}


@app.on_event("shutdown")
async def shutdown():
    if _refresh_task is not None:
        _refresh_task.cancel()
    # Закрываем все соединения пула
    await engine.dispose()
