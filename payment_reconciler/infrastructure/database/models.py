"""SQLAlchemy ORM models for payment intents, account holders, and the wallet credit journal"""

import uuid
from decimal import Decimal

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from payment_reconciler.domain.models import PaymentIntent, PaymentStatus

Base = declarative_base()


class BankAccount(Base):
    """Monitored receiving bank account"""

    __tablename__ = "bank_account"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bank_name = Column(Text, nullable=False)
    account_number = Column(Text, nullable=False)
    api_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payments = relationship("Payment", back_populates="bank_account")


class AccountHolder(Base):
    """Seller whose wallet is credited when a payment settles"""

    __tablename__ = "account_holder"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    display_name = Column(Text, nullable=False)
    wallet_balance = Column(Numeric(18, 6), nullable=False, default=Decimal("0"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Payment(Base):
    """Payment intent awaiting an incoming bank transfer"""

    __tablename__ = "payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_id = Column(Uuid(as_uuid=True), ForeignKey("account_holder.id", ondelete="SET NULL"), nullable=True, index=True)
    bank_account_id = Column(Uuid(as_uuid=True), ForeignKey("bank_account.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    amount_local = Column(BigInteger, nullable=True)  # preferred for matching when set
    amount_credit = Column(Numeric(18, 6), nullable=True)  # wallet currency
    transfer_reference = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=PaymentStatus.PENDING.value, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    matched_transaction_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    bank_account = relationship("BankAccount", back_populates="payments")

    @property
    def expected_amount(self) -> int:
        return self.amount_local or self.amount

    def to_intent(self) -> PaymentIntent:
        return PaymentIntent(
            payment_id=self.id,
            expected_amount=self.expected_amount,
            transfer_reference=self.transfer_reference,
            amount=self.amount,
            credited_amount=self.amount_credit,
            seller_id=self.seller_id,
            bank_account_id=self.bank_account_id,
        )


class WalletCredit(Base):
    """Journal of applied wallet credits, at most one per payment"""

    __tablename__ = "wallet_credit"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payment.id"), nullable=False, unique=True)
    account_holder_id = Column(Uuid(as_uuid=True), ForeignKey("account_holder.id"), nullable=False, index=True)
    amount = Column(Numeric(18, 6), nullable=False)
    transaction_reference = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
