"""Data access layer for payment intents and account holder wallets"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from payment_reconciler.domain.models import PaymentStatus
from payment_reconciler.infrastructure.database.models import AccountHolder, Payment, WalletCredit


class PaymentRepository:
    """Repository for payment intents"""

    def __init__(self, db: Session):
        self.db = db

    def get_pending(self, now: datetime) -> List[Payment]:
        """Pending, unexpired intents with their bank account loaded"""
        return (
            self.db.query(Payment)
            .options(joinedload(Payment.bank_account))
            .filter(Payment.status == PaymentStatus.PENDING.value)
            .filter(Payment.expires_at > now)
            .order_by(Payment.created_at)
            .all()
        )

    def get_by_id(self, payment_id: uuid.UUID) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def delete_expired(self, now: datetime) -> int:
        """Bulk-delete pending intents whose deadline has passed; returns the count"""
        return (
            self.db.query(Payment)
            .filter(Payment.status == PaymentStatus.PENDING.value)
            .filter(Payment.expires_at <= now)
            .delete(synchronize_session=False)
        )

    def mark_completed(self, payment_id: uuid.UUID, completed_at: datetime, transaction_id: str) -> bool:
        """
        Transition pending -> completed.

        The status condition makes this a claim: False means the payment is no
        longer pending (settled or purged by someone else) and nothing changed.
        """
        updated = (
            self.db.query(Payment)
            .filter(Payment.id == payment_id)
            .filter(Payment.status == PaymentStatus.PENDING.value)
            .update(
                {
                    Payment.status: PaymentStatus.COMPLETED.value,
                    Payment.completed_at: completed_at,
                    Payment.matched_transaction_id: transaction_id or None,
                },
                synchronize_session=False,
            )
        )
        return updated == 1


class AccountHolderRepository:
    """Repository for account holders and their wallet credit journal"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, holder_id: Optional[uuid.UUID]) -> Optional[AccountHolder]:
        if holder_id is None:
            return None
        return self.db.query(AccountHolder).filter(AccountHolder.id == holder_id).first()

    def credit_wallet(
        self,
        holder: AccountHolder,
        amount: Decimal,
        payment_id: uuid.UUID,
        transaction_reference: Optional[str] = None,
    ) -> WalletCredit:
        """
        Journal the credit and add it to the wallet balance.

        The journal row is unique per payment, so a second credit for the same
        payment fails on flush instead of inflating the balance. Not committed here.
        """
        credit = WalletCredit(
            payment_id=payment_id,
            account_holder_id=holder.id,
            amount=amount,
            transaction_reference=transaction_reference or None,
        )
        self.db.add(credit)
        self.db.flush()

        (
            self.db.query(AccountHolder)
            .filter(AccountHolder.id == holder.id)
            .update(
                {AccountHolder.wallet_balance: AccountHolder.wallet_balance + amount},
                synchronize_session=False,
            )
        )
        return credit

    def get_credits_for_payment(self, payment_id: uuid.UUID) -> List[WalletCredit]:
        return self.db.query(WalletCredit).filter(WalletCredit.payment_id == payment_id).all()
