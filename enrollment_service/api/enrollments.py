"""Enrollment endpoints.

  POST /v1/enrollments   payment-success signal → 201 Enrollment
  GET  /v1/enrollments   the caller's enrollments (admins may pass ?student_id=)

Only the student themself, an admin, or the payments service may record
an enrollment for a student.  The amount in the body is recorded only
when the caller is the payments service; otherwise the course price is.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from enrollment_service.api.dependencies import EnrollmentLedgerDep, require_user
from enrollment_service.core.errors import UnauthorizedError
from enrollment_service.models.enrollment import Enrollment
from enrollment_service.models.principal import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


class EnrollIn(BaseModel):
    student_id: UUID
    course_id: UUID
    amount_paid: Decimal | None = Field(
        default=None, ge=0, max_digits=10, decimal_places=2
    )
    payment_reference: str | None = Field(default=None, max_length=128)


class EnrollmentOut(BaseModel):
    student_id: UUID
    course_id: UUID
    enrolled_at: int
    amount_paid: Decimal
    currency: str
    payment_reference: str | None

    @staticmethod
    def of(e: Enrollment) -> EnrollmentOut:
        return EnrollmentOut(
            student_id=e.student_id,
            course_id=e.course_id,
            enrolled_at=e.enrolled_at,
            amount_paid=e.amount_paid,
            currency=e.currency,
            payment_reference=e.payment_reference,
        )


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def enroll(
    body: EnrollIn,
    principal: Annotated[Principal, Depends(require_user)],
    ledger: EnrollmentLedgerDep,
) -> EnrollmentOut:
    if not (principal.acts_for(body.student_id) or principal.has_role("payments")):
        logger.warning(
            "Access denied: user=%s cannot enroll student=%s",
            principal.user_id,
            body.student_id,
        )
        raise UnauthorizedError("cannot enroll another student")

    amount = body.amount_paid if principal.has_role("payments") else None
    enrollment = await ledger.enroll(
        body.student_id,
        body.course_id,
        amount,
        payment_reference=body.payment_reference,
    )
    return EnrollmentOut.of(enrollment)


@router.get("", response_model=list[EnrollmentOut])
async def list_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    ledger: EnrollmentLedgerDep,
    student_id: Annotated[UUID | None, Query()] = None,
) -> list[EnrollmentOut]:
    target = student_id or principal.uid
    if not principal.acts_for(target):
        raise UnauthorizedError("cannot list another student's enrollments")
    return [EnrollmentOut.of(e) for e in await ledger.list_for_student(target)]
