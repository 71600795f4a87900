"""rb_payment REST API — quote, checkout order and payment confirmation."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rb_common.database import get_db_session
from src.rb_common.request_log import request_id_of
from src.rb_common.response import ApiResponse, success_response
from src.rb_obligation.api.router import get_obligation_service
from src.rb_payment.application.schemas import (
    CreateOrderRequest,
    QuoteRequest,
    VerifyPaymentRequest,
)
from src.rb_payment.application.service import PaymentApplicationService
from src.rb_payment.infrastructure.gateway import PaymentGatewayClient
from src.rb_pricing.domain.policy import policy_from_settings

router = APIRouter(prefix="/payments", tags=["payments"])

_service: PaymentApplicationService | None = None


def get_payment_service() -> PaymentApplicationService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = PaymentApplicationService(
            obligations=get_obligation_service(),
            gateway=PaymentGatewayClient.from_settings(settings),
            policy=policy_from_settings(settings),
            key_secret=settings.GATEWAY_KEY_SECRET,
            currency=settings.CURRENCY,
        )
    return _service


ServiceDep = Annotated[PaymentApplicationService, Depends(get_payment_service)]
DbDep = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("/quote")
async def quote(
    body: QuoteRequest, service: ServiceDep, db: DbDep, request: Request
) -> ApiResponse:
    data = await service.quote(db, body)
    return success_response(data.model_dump(), request_id_of(request))


@router.post("/orders", status_code=201)
async def create_order(
    body: CreateOrderRequest, service: ServiceDep, db: DbDep, request: Request
) -> ApiResponse:
    data = await service.create_order(db, body)
    return success_response(data.model_dump(), request_id_of(request))


@router.post("/verify")
async def verify_payment(
    body: VerifyPaymentRequest, service: ServiceDep, db: DbDep, request: Request
) -> ApiResponse:
    data = await service.verify_and_apply(db, body)
    return success_response(data.model_dump(), request_id_of(request))


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str, service: ServiceDep, db: DbDep, request: Request
) -> ApiResponse:
    data = await service.payment_details(db, payment_id)
    return success_response(data.model_dump(), request_id_of(request))
