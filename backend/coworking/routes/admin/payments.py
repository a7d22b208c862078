# backend/coworking/routes/admin/payments.py
"""Admin payment management and revenue stats."""

import asyncio
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ...api.dependencies import get_payment_service, require_admin
from ...core.constants import MAX_QUERY_LIMIT
from ...core.enums import PaymentMethod, PaymentStatus
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.user import User
from ...schemas.payment import (
    PaymentListResponse,
    PaymentResponse,
    PaymentStatsResponse,
    RefundRequest,
)
from ...services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["admin-payments"])


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=MAX_QUERY_LIMIT),
    _: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentListResponse:
    payments, total = await asyncio.to_thread(
        payment_service.list_payments,
        status=payment_status.value if payment_status else None,
        payment_method=payment_method.value if payment_method else None,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(payment) for payment in payments],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=PaymentStatsResponse)
async def payment_stats(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    _: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentStatsResponse:
    try:
        stats = await asyncio.to_thread(payment_service.get_stats, start_date, end_date)
        return PaymentStatsResponse(**stats)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{payment_id}/mark-paid", response_model=PaymentResponse)
async def mark_payment_paid(
    payment_id: str,
    admin: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(payment_service.mark_paid, admin, payment_id)
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    payload: Optional[RefundRequest] = Body(None),
    admin: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(
            payment_service.refund, admin, payment_id, payload.reason if payload else None
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)
