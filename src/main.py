"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.rb_common.database import engine
from src.rb_common.errors import AppError
from src.rb_common.redis_client import close_redis, get_redis
from src.rb_common.request_log import RequestLogMiddleware, request_id_of
from src.rb_common.response import error_response
from src.rb_obligation.api.router import router as obligation_router
from src.rb_payment.api.router import router as payment_router
from src.rb_reconciliation.api.router import get_scheduler
from src.rb_reconciliation.api.router import router as reconciliation_router
from src.rb_reconciliation.application.scheduler import SweepScheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start the daily sweep. Shutdown: stop and dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    scheduler: SweepScheduler | None = None
    if settings.SWEEP_ENABLED:
        scheduler = get_scheduler()
        scheduler.start()
    yield
    # Shutdown
    if scheduler is not None:
        await scheduler.stop()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, request_id_of(request))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(obligation_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(reconciliation_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
