"""
Reconciliation pass - settle pending payment intents against bank history.

One pass:
- loads pending, unexpired intents and groups them by receiving bank account
- fetches each account's history once (accounts fetched concurrently)
- matches every intent of the group against that single transaction list
- settles matches as one unit of work per intent (wallet credit + completion)
- purges expired pending intents, whether or not anything was pending
"""

import asyncio
import logging
import time
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payment_reconciler.config import settings
from payment_reconciler.domain.exceptions import AmbiguousMatchError
from payment_reconciler.domain.matching import find_matching_transaction
from payment_reconciler.domain.models import (
    FetchResult,
    FetchStatus,
    MatchPolicy,
    PaymentIntent,
    ReconciliationSummary,
    Transaction,
)
from payment_reconciler.domain.settlement import resolve_credit_amount
from payment_reconciler.infrastructure.clients.bank import BankClient
from payment_reconciler.infrastructure.database.models import BankAccount, Payment
from payment_reconciler.infrastructure.database.repositories import AccountHolderRepository, PaymentRepository
from payment_reconciler.infrastructure.observability.logging import log_pass_summary
from payment_reconciler.infrastructure.observability.metrics import (
    ambiguous_match_counter,
    match_miss_counter,
    record_pass,
    settlement_failure_counter,
)
from payment_reconciler.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def group_by_bank_account(payments: List[Payment]) -> "OrderedDict[str, Tuple[BankAccount, List[Payment]]]":
    """Group intents by receiving account, keeping first-seen order"""
    groups: "OrderedDict[str, Tuple[BankAccount, List[Payment]]]" = OrderedDict()
    for payment in payments:
        key = str(payment.bank_account_id)
        if key not in groups:
            groups[key] = (payment.bank_account, [])
        groups[key][1].append(payment)
    return groups


class ReconciliationService:
    """Runs reconciliation passes against one database session"""

    def __init__(
        self,
        db: Session,
        bank_client: BankClient | None = None,
        match_policy: MatchPolicy | None = None,
        fallback_exchange_rate: Decimal | None = None,
    ):
        self.db = db
        self.bank_client = bank_client or BankClient()
        self.match_policy = match_policy or settings.match_policy
        self.fallback_exchange_rate = fallback_exchange_rate or settings.fallback_exchange_rate
        self.payments = PaymentRepository(db)
        self.holders = AccountHolderRepository(db)

    async def run(self, now: Optional[datetime] = None) -> ReconciliationSummary:
        """
        Execute one pass. Never raises; an unexpected failure is reported as a
        zero-progress summary carrying the error message.
        """
        start_time = time.time()
        try:
            summary = await self._run_pass(now or utcnow())
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Reconciliation pass failed: {e}")
            summary = ReconciliationSummary(error=str(e))

        record_pass(summary)
        log_pass_summary(summary, (time.time() - start_time) * 1000)
        return summary

    async def _run_pass(self, now: datetime) -> ReconciliationSummary:
        pending = self.payments.get_pending(now)

        if not pending:
            return ReconciliationSummary(deleted=self._purge_expired(now))

        logger.info(f"Found {len(pending)} pending payment(s)", extra={"pending_count": len(pending)})

        groups = group_by_bank_account(pending)
        results: List[FetchResult] = await asyncio.gather(
            *(self.bank_client.fetch_transactions(account) for account, _ in groups.values())
        )

        checked = 0
        updated = 0
        for (account, payments), result in zip(groups.values(), results):
            context = {
                "bank_account_id": str(account.id),
                "bank_name": account.bank_name,
                "account_number": account.account_number,
            }

            if result.status == FetchStatus.SKIPPED:
                logger.warning(
                    f"Bank account {account.bank_name} ({account.account_number}) has no API URL, "
                    f"skipping {len(payments)} payment(s)",
                    extra=context,
                )
                continue

            logger.info(
                f"Fetched {len(result.transactions)} transaction(s) for {len(payments)} payment(s)",
                extra={**context, "fetch_status": result.status.value, "fetch_error": result.error},
            )

            checked += len(payments)
            for payment in payments:
                if self._reconcile_payment(payment, result.transactions, now):
                    updated += 1

        deleted = self._purge_expired(now)
        return ReconciliationSummary(checked=checked, updated=updated, deleted=deleted)

    def _reconcile_payment(self, payment: Payment, transactions: List[Transaction], now: datetime) -> bool:
        intent = payment.to_intent()
        context = {
            "payment_id": str(intent.payment_id),
            "transfer_reference": intent.transfer_reference,
            "expected_amount": intent.expected_amount,
        }

        try:
            transaction = find_matching_transaction(intent, transactions, self.match_policy)
        except AmbiguousMatchError as e:
            ambiguous_match_counter.inc()
            logger.warning(f"Ambiguous match: {e}", extra={**context, "candidate_ids": e.candidate_ids})
            return False

        if transaction is None:
            match_miss_counter.inc()
            logger.info(f"No matching transaction yet for payment {intent.payment_id}", extra=context)
            return False

        try:
            settled = self._settle(intent, transaction, now, context)
        except SQLAlchemyError as e:
            self.db.rollback()
            settlement_failure_counter.inc()
            logger.error(f"Settlement rolled back for payment {intent.payment_id}: {e}", extra=context)
            return False

        if settled:
            logger.info(
                f"Payment {intent.payment_id} settled by transaction {transaction.external_id}",
                extra={**context, "transaction_id": transaction.external_id, "seller_id": str(intent.seller_id)},
            )
        return settled

    def _settle(self, intent: PaymentIntent, transaction: Transaction, now: datetime, context: Dict) -> bool:
        """Credit the seller and complete the payment in a single DB transaction"""
        seller = self.holders.get_by_id(intent.seller_id)
        if seller is None:
            logger.warning(
                f"Seller {intent.seller_id} not found, completing payment without wallet credit",
                extra=context,
            )
        else:
            amount = resolve_credit_amount(intent, self.fallback_exchange_rate)
            self.holders.credit_wallet(seller, amount, intent.payment_id, transaction.external_id)

        if not self.payments.mark_completed(intent.payment_id, now, transaction.external_id):
            self.db.rollback()
            logger.warning(f"Payment {intent.payment_id} is no longer pending, settlement skipped", extra=context)
            return False

        self.db.commit()
        return True

    def _purge_expired(self, now: datetime) -> int:
        deleted = self.payments.delete_expired(now)
        self.db.commit()
        if deleted:
            logger.info(f"Purged {deleted} expired payment(s)", extra={"deleted_count": deleted})
        return deleted
