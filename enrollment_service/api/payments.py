"""Checkout: charge the course price through the gateway, then enroll.

  POST /v1/payments/checkout {course_id} → 201 {enrollment, receipt}
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from enrollment_service.api.dependencies import (
    EnrollmentLedgerDep,
    PaymentGatewayDep,
    require_user,
)
from enrollment_service.api.enrollments import EnrollmentOut
from enrollment_service.models.principal import Principal

router = APIRouter(prefix="/v1/payments", tags=["payments"])


class CheckoutIn(BaseModel):
    course_id: UUID


class ReceiptOut(BaseModel):
    id: str
    amount: Decimal
    currency: str
    status: str
    created_at: int


class CheckoutOut(BaseModel):
    enrollment: EnrollmentOut
    receipt: ReceiptOut | None


@router.post(
    "/checkout", response_model=CheckoutOut, status_code=status.HTTP_201_CREATED
)
async def checkout(
    body: CheckoutIn,
    principal: Annotated[Principal, Depends(require_user)],
    ledger: EnrollmentLedgerDep,
    gateway: PaymentGatewayDep,
) -> CheckoutOut:
    enrollment, receipt = await ledger.purchase(principal.uid, body.course_id, gateway)
    return CheckoutOut(
        enrollment=EnrollmentOut.of(enrollment),
        receipt=(
            ReceiptOut(
                id=receipt.id,
                amount=receipt.amount,
                currency=receipt.currency,
                status=receipt.status,
                created_at=receipt.created_at,
            )
            if receipt is not None
            else None
        ),
    )
