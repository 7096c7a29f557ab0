"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class ReconciliationResponse(BaseModel):
    """Response for POST /v1/reconciliation/run"""

    checked: int
    updated: int
    deleted: int
    error: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    """Response for GET /v1/payments/{payment_id}"""

    payment_id: str
    status: str
    transfer_reference: str
    expected_amount: int
    expires_at: datetime
    completed_at: Optional[datetime] = None
    matched_transaction_id: Optional[str] = None
    credited_amount: Optional[Decimal] = None
