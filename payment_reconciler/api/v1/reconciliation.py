"""POST /v1/reconciliation/run - scheduler entry point for one reconciliation pass"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from payment_reconciler.api.dependencies import get_bank_client, get_request_id
from payment_reconciler.api.v1.schemas import ReconciliationResponse
from payment_reconciler.infrastructure.clients.bank import BankClient
from payment_reconciler.infrastructure.database.session import get_db
from payment_reconciler.services.reconciliation import ReconciliationService

router = APIRouter()


@router.post("/reconciliation/run", response_model=ReconciliationResponse, response_model_exclude_none=True)
async def run_reconciliation(
    request: Request,
    db: Session = Depends(get_db),
    bank_client: BankClient = Depends(get_bank_client),
):
    """
    Run one reconciliation pass.

    Always answers 200: a failed pass is reported through the `error` field
    with zeroed counts, so the scheduler only needs to inspect the body.
    """
    request_id = get_request_id(request)
    logging.info("Reconciliation pass requested", extra={"request_id": request_id})

    summary = await ReconciliationService(db, bank_client).run()
    return ReconciliationResponse(**summary.as_dict())
