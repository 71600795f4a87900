"""rb_obligation REST API — status, ledger history and resource-store hooks."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rb_common.admin import require_admin_token
from src.rb_common.database import get_db_session
from src.rb_common.enums import ObligationKind
from src.rb_common.redis_client import get_redis
from src.rb_common.request_log import request_id_of
from src.rb_common.response import ApiResponse, success_response
from src.rb_obligation.application.schemas import SuspendRequest
from src.rb_obligation.application.service import ObligationApplicationService
from src.rb_obligation.infrastructure.publisher import RedisTransitionPublisher
from src.rb_pricing.domain.policy import policy_from_settings

router = APIRouter(prefix="/obligations", tags=["obligations"])

_service: ObligationApplicationService | None = None


def get_obligation_service() -> ObligationApplicationService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = ObligationApplicationService(
            policy=policy_from_settings(settings),
            publisher=RedisTransitionPublisher(get_redis),
            currency=settings.CURRENCY,
        )
    return _service


ServiceDep = Annotated[ObligationApplicationService, Depends(get_obligation_service)]
DbDep = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("/{kind}/{resource_id}", dependencies=[Depends(require_admin_token)])
async def open_obligation(
    kind: ObligationKind,
    resource_id: str,
    service: ServiceDep,
    db: DbDep,
    request: Request,
) -> ApiResponse:
    data = await service.open_obligation(db, kind, resource_id)
    return success_response(data.model_dump(), request_id_of(request))


@router.get("/{kind}/{resource_id}")
async def get_obligation_status(
    kind: ObligationKind,
    resource_id: str,
    service: ServiceDep,
    db: DbDep,
    request: Request,
) -> ApiResponse:
    data = await service.get_status(db, kind, resource_id)
    return success_response(data.model_dump(), request_id_of(request))


@router.get("/{kind}/{resource_id}/ledger")
async def list_ledger(
    kind: ObligationKind,
    resource_id: str,
    service: ServiceDep,
    db: DbDep,
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await service.list_ledger(db, kind, resource_id, cursor, limit)
    return success_response(data.model_dump(), request_id_of(request))


@router.post(
    "/{kind}/{resource_id}/refresh-rate", dependencies=[Depends(require_admin_token)]
)
async def refresh_rate(
    kind: ObligationKind,
    resource_id: str,
    service: ServiceDep,
    db: DbDep,
    request: Request,
) -> ApiResponse:
    data = await service.refresh_rate(db, kind, resource_id)
    return success_response(data.model_dump(), request_id_of(request))


@router.post("/{kind}/{resource_id}/suspend", dependencies=[Depends(require_admin_token)])
async def suspend_obligation(
    kind: ObligationKind,
    resource_id: str,
    body: SuspendRequest,
    service: ServiceDep,
    db: DbDep,
    request: Request,
) -> ApiResponse:
    data = await service.suspend(db, kind, resource_id, body.reason)
    return success_response(data.model_dump(), request_id_of(request))
