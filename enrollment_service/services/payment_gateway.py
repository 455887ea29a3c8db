"""Payment gateway boundary.

The ledger never talks to a processor directly; it depends on the
PaymentGateway protocol.  MockPaymentGateway is the only implementation
shipped here and is what dev and tests run against.

Charges carry an idempotency key.  A charge repeated with the key of a
receipt that still stands returns that receipt and moves no money, so a
client retrying after a timed-out charge is not billed twice.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from enrollment_service.core.errors import PaymentDeclinedError
from enrollment_service.models.payment import Receipt

logger = logging.getLogger(__name__)


@runtime_checkable
class PaymentGateway(Protocol):
    async def charge(
        self,
        student_id: UUID,
        course_id: UUID,
        amount: Decimal,
        currency: str,
        *,
        idempotency_key: str | None = None,
    ) -> Receipt:
        """Charge the student.  Raises PaymentDeclinedError on refusal."""
        ...

    async def refund(self, receipt: Receipt) -> Receipt: ...


class MockPaymentGateway:
    """Always approves positive amounts; keeps receipts in memory."""

    def __init__(self) -> None:
        self._receipts: dict[str, Receipt] = {}
        self._by_key: dict[str, str] = {}  # idempotency key -> receipt id

    async def charge(
        self,
        student_id: UUID,
        course_id: UUID,
        amount: Decimal,
        currency: str,
        *,
        idempotency_key: str | None = None,
    ) -> Receipt:
        if idempotency_key is not None:
            previous = self._receipts.get(self._by_key.get(idempotency_key, ""))
            if previous is not None and previous.status == "succeeded":
                logger.info(
                    "Charge replayed receipt=%s key=%s", previous.id, idempotency_key
                )
                return previous

        if amount <= 0:
            logger.warning(
                "Charge declined student=%s course=%s amount=%s",
                student_id,
                course_id,
                amount,
            )
            raise PaymentDeclinedError(f"cannot charge {amount} {currency}")

        receipt = Receipt(
            id=f"rcpt_{uuid.uuid4().hex}",
            student_id=student_id,
            course_id=course_id,
            amount=amount,
            currency=currency,
            created_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )
        self._receipts[receipt.id] = receipt
        if idempotency_key is not None:
            self._by_key[idempotency_key] = receipt.id
        logger.info("Charge succeeded receipt=%s amount=%s", receipt.id, amount)
        return receipt

    async def refund(self, receipt: Receipt) -> Receipt:
        refunded = replace(receipt, status="refunded")
        self._receipts[receipt.id] = refunded
        logger.info("Refund issued receipt=%s", receipt.id)
        return refunded

    def get(self, receipt_id: str) -> Receipt | None:
        return self._receipts.get(receipt_id)


payment_gateway: PaymentGateway = MockPaymentGateway()
