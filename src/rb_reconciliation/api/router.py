"""Admin REST API — on-demand reconciliation sweep."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from config.settings import settings
from src.rb_common.admin import require_admin_token
from src.rb_common.database import async_session_factory
from src.rb_common.redis_client import get_redis
from src.rb_common.request_log import request_id_of
from src.rb_common.response import ApiResponse, success_response
from src.rb_obligation.infrastructure.publisher import RedisTransitionPublisher
from src.rb_reconciliation.application.scheduler import SWEEP_LOCK_KEY, SweepScheduler
from src.rb_reconciliation.application.sweep import ReconciliationSweep

router = APIRouter(
    prefix="/admin/reconciliation",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)

_scheduler: SweepScheduler | None = None


def get_scheduler() -> SweepScheduler:
    """Process-wide scheduler shared by the lifespan loop and manual runs."""
    global _scheduler  # noqa: PLW0603
    if _scheduler is None:
        _scheduler = SweepScheduler(
            ReconciliationSweep(publisher=RedisTransitionPublisher(get_redis)),
            async_session_factory,
            get_redis,
            sweep_hour_utc=settings.SWEEP_HOUR_UTC,
            lock_ttl_seconds=settings.SWEEP_LOCK_TTL_SECONDS,
        )
    return _scheduler


@router.post("/run")
async def run_reconciliation(
    scheduler: Annotated[SweepScheduler, Depends(get_scheduler)],
    request: Request,
) -> ApiResponse:
    report = await scheduler.run_now()
    if report is None:
        data = {"skipped": True, "reason": f"{SWEEP_LOCK_KEY} held by another sweep"}
    else:
        data = {"skipped": False, **report.to_dict()}
    return success_response(data, request_id_of(request))
