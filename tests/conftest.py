"""Pytest fixtures for testing"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from payment_reconciler.api.main import create_app
from payment_reconciler.infrastructure.database.models import AccountHolder, BankAccount, Base, Payment
from payment_reconciler.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def bank_account(db: Session) -> BankAccount:
    account = BankAccount(
        bank_name="MB Bank",
        account_number="0919847223",
        api_url="https://bank.example/history/0919847223",
    )
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def seller(db: Session) -> AccountHolder:
    holder = AccountHolder(display_name="Duong Quoc Tien", wallet_balance=Decimal("5"))
    db.add(holder)
    db.commit()
    return holder


@pytest.fixture
def make_payment(db: Session, now: datetime) -> Callable[..., Payment]:
    """Factory for pending payment intents expiring 15 minutes after `now`"""

    def _make(
        bank_account: BankAccount,
        seller: Optional[AccountHolder] = None,
        amount: int = 286000,
        transfer_reference: str = "sk539788",
        amount_local: Optional[int] = None,
        amount_credit: Optional[Decimal] = None,
        expires_at: Optional[datetime] = None,
        status: str = "pending",
    ) -> Payment:
        payment = Payment(
            id=uuid.uuid4(),
            seller_id=seller.id if seller else None,
            bank_account_id=bank_account.id,
            amount=amount,
            amount_local=amount_local,
            amount_credit=amount_credit,
            transfer_reference=transfer_reference,
            status=status,
            expires_at=expires_at or now + timedelta(minutes=15),
        )
        db.add(payment)
        db.commit()
        return payment

    return _make

