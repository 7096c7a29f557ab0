"""GET /v1/payments/{payment_id} - Fetch payment intent status"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from payment_reconciler.api.v1.schemas import PaymentStatusResponse
from payment_reconciler.infrastructure.database.repositories import AccountHolderRepository, PaymentRepository
from payment_reconciler.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/payments/{payment_id}", response_model=PaymentStatusResponse)
def get_payment(payment_id: str, db: Session = Depends(get_db)):
    """
    Retrieve the current state of a payment intent.

    Expired intents are purged by reconciliation, so they answer 404 like unknown ids.
    """
    try:
        payment_uuid = uuid.UUID(payment_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payment ID format")

    payment = PaymentRepository(db).get_by_id(payment_uuid)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")

    credits = AccountHolderRepository(db).get_credits_for_payment(payment.id)

    return PaymentStatusResponse(
        payment_id=str(payment.id),
        status=payment.status,
        transfer_reference=payment.transfer_reference,
        expected_amount=payment.expected_amount,
        expires_at=payment.expires_at,
        completed_at=payment.completed_at,
        matched_transaction_id=payment.matched_transaction_id,
        credited_amount=credits[0].amount if credits else None,
    )
