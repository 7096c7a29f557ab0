"""Integration tests for the reconciliation pass against a SQLite store"""

from collections import Counter
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import patch

from prometheus_client import REGISTRY
from sqlalchemy.exc import OperationalError

from payment_reconciler.domain.models import Direction, FetchResult, MatchPolicy, Transaction
from payment_reconciler.infrastructure.database.models import AccountHolder, BankAccount, Payment, WalletCredit
from payment_reconciler.services.reconciliation import ReconciliationService, group_by_bank_account


class StubBankClient:
    """Serves canned fetch results per bank account and counts calls"""

    def __init__(self, results: Optional[Dict[str, FetchResult]] = None):
        self.results = results or {}
        self.calls: Counter = Counter()

    async def fetch_transactions(self, bank_account: BankAccount) -> FetchResult:
        self.calls[str(bank_account.id)] += 1
        if not (bank_account.api_url or "").strip():
            return FetchResult.skipped("no API URL configured")
        return self.results.get(str(bank_account.id), FetchResult.success([]))


def incoming(amount: int, description: str, ref: str = "FT1", direction=Direction.IN) -> Transaction:
    return Transaction(
        external_id=ref,
        amount=amount,
        description=description,
        date="10/02/2026",
        time="00:06:00",
        direction=direction,
    )


def wallet_of(db, holder: AccountHolder) -> Decimal:
    db.expire_all()
    return db.get(AccountHolder, holder.id).wallet_balance


def status_of(db, payment_id) -> Optional[str]:
    db.expire_all()
    payment = db.get(Payment, payment_id)
    return payment.status if payment else None


async def test_matching_transaction_completes_payment_and_credits_wallet(db, now, bank_account, seller, make_payment):
    """Ledger record 286000 'order X' settles an intent for 286000 / reference 'X'"""
    payment = make_payment(bank_account, seller, amount=286000, transfer_reference="X")
    bank = StubBankClient({str(bank_account.id): FetchResult.success([incoming(286000, "order X")])})

    summary = await ReconciliationService(db, bank, fallback_exchange_rate=Decimal("25000")).run(now=now)

    assert summary.as_dict() == {"checked": 1, "updated": 1, "deleted": 0}
    db.expire_all()
    stored = db.get(Payment, payment.id)
    assert stored.status == "completed"
    assert stored.completed_at is not None
    assert stored.matched_transaction_id == "FT1"
    assert wallet_of(db, seller) == Decimal("5") + Decimal("11.44")


async def test_explicit_credit_amount_and_local_amount(db, now, bank_account, seller, make_payment):
    """Matching uses amount_local, crediting uses amount_credit"""
    payment = make_payment(
        bank_account,
        seller,
        amount=12,
        amount_local=300000,
        amount_credit=Decimal("12.00"),
        transfer_reference="INV-42",
    )
    bank = StubBankClient({str(bank_account.id): FetchResult.success([incoming(300000, "pay inv-42")])})

    summary = await ReconciliationService(db, bank).run(now=now)

    assert summary.updated == 1
    assert status_of(db, payment.id) == "completed"
    assert wallet_of(db, seller) == Decimal("17")


async def test_no_match_leaves_payment_pending(db, now, bank_account, seller, make_payment):
    payment = make_payment(bank_account, seller, amount=100000, transfer_reference="ABC123")
    transactions = [
        incoming(100001, "order ABC123"),
        incoming(99999, "order ABC123"),
        incoming(100000, "order ABC123", direction=Direction.OUT),
        incoming(100000, "order something else"),
    ]
    bank = StubBankClient({str(bank_account.id): FetchResult.success(transactions)})

    summary = await ReconciliationService(db, bank).run(now=now)

    assert summary.as_dict() == {"checked": 1, "updated": 0, "deleted": 0}
    assert status_of(db, payment.id) == "pending"
    assert wallet_of(db, seller) == Decimal("5")


async def test_fetch_once_per_bank_account(db, now, bank_account, seller, make_payment):
    """Two intents on the same account share one fetch"""
    other_account = BankAccount(bank_name="VCB", account_number="0011004", api_url="https://vcb.example/h")
    db.add(other_account)
    db.commit()

    first = make_payment(bank_account, seller, amount=1000, transfer_reference="AAA")
    second = make_payment(bank_account, seller, amount=2000, transfer_reference="BBB")
    make_payment(other_account, seller, amount=3000, transfer_reference="CCC")

    bank = StubBankClient(
        {
            str(bank_account.id): FetchResult.success(
                [incoming(1000, "AAA", ref="T1"), incoming(2000, "bbb", ref="T2")]
            )
        }
    )

    summary = await ReconciliationService(db, bank, fallback_exchange_rate=Decimal("1000")).run(now=now)

    assert bank.calls == Counter({str(bank_account.id): 1, str(other_account.id): 1})
    assert summary.as_dict() == {"checked": 3, "updated": 2, "deleted": 0}
    assert status_of(db, first.id) == "completed"
    assert status_of(db, second.id) == "completed"
    assert wallet_of(db, seller) == Decimal("8")


async def test_second_pass_does_not_credit_again(db, now, bank_account, seller, make_payment):
    """Idempotence: completed intents drop out of the pending query"""
    payment = make_payment(bank_account, seller, amount=286000, transfer_reference="X")
    bank = StubBankClient({str(bank_account.id): FetchResult.success([incoming(286000, "order X")])})
    service = ReconciliationService(db, bank, fallback_exchange_rate=Decimal("25000"))

    first = await service.run(now=now)
    second = await service.run(now=now)

    assert first.updated == 1
    assert second.as_dict() == {"checked": 0, "updated": 0, "deleted": 0}
    assert status_of(db, payment.id) == "completed"
    assert wallet_of(db, seller) == Decimal("16.44")
    assert db.query(WalletCredit).filter(WalletCredit.payment_id == payment.id).count() == 1


async def test_expired_intents_purged_when_nothing_pending(db, now, bank_account, seller, make_payment):
    expired_id = make_payment(bank_account, seller, expires_at=now - timedelta(minutes=1)).id
    at_deadline_id = make_payment(bank_account, seller, expires_at=now).id
    bank = StubBankClient()

    summary = await ReconciliationService(db, bank).run(now=now)

    assert summary.as_dict() == {"checked": 0, "updated": 0, "deleted": 2}
    assert status_of(db, expired_id) is None
    assert status_of(db, at_deadline_id) is None
    assert not bank.calls


async def test_expired_intents_purged_alongside_pending(db, now, bank_account, seller, make_payment):
    live = make_payment(bank_account, seller, transfer_reference="LIVE")
    make_payment(bank_account, seller, transfer_reference="OLD", expires_at=now - timedelta(hours=1))

    summary = await ReconciliationService(db, StubBankClient()).run(now=now)

    assert summary.as_dict() == {"checked": 1, "updated": 0, "deleted": 1}
    assert status_of(db, live.id) == "pending"


async def test_completed_intents_are_never_purged(db, now, bank_account, seller, make_payment):
    done = make_payment(bank_account, seller, status="completed", expires_at=now - timedelta(days=1))

    summary = await ReconciliationService(db, StubBankClient()).run(now=now)

    assert summary.deleted == 0
    assert status_of(db, done.id) == "completed"


async def test_unconfigured_account_is_skipped(db, now, seller, make_payment):
    account = BankAccount(bank_name="ACB", account_number="123", api_url="  ")
    db.add(account)
    db.commit()
    payment = make_payment(account, seller)

    summary = await ReconciliationService(db, StubBankClient()).run(now=now)

    assert summary.as_dict() == {"checked": 0, "updated": 0, "deleted": 0}
    assert status_of(db, payment.id) == "pending"


async def test_failed_fetch_counts_as_checked_without_matches(db, now, bank_account, seller, make_payment):
    payment = make_payment(bank_account, seller)
    bank = StubBankClient({str(bank_account.id): FetchResult.failed("Bank API timeout after 15.0s")})

    summary = await ReconciliationService(db, bank).run(now=now)

    assert summary.as_dict() == {"checked": 1, "updated": 0, "deleted": 0}
    assert status_of(db, payment.id) == "pending"


async def test_missing_seller_still_completes_without_credit(db, now, bank_account, make_payment):
    payment = make_payment(bank_account, None, amount=286000, transfer_reference="X")
    bank = StubBankClient({str(bank_account.id): FetchResult.success([incoming(286000, "order X")])})

    summary = await ReconciliationService(db, bank).run(now=now)

    assert summary.updated == 1
    assert status_of(db, payment.id) == "completed"
    assert db.query(WalletCredit).count() == 0


async def test_unique_policy_leaves_ambiguous_payment_pending(db, now, bank_account, seller, make_payment):
    payment = make_payment(bank_account, seller, amount=500, transfer_reference="DUP")
    bank = StubBankClient(
        {str(bank_account.id): FetchResult.success([incoming(500, "DUP", ref="T1"), incoming(500, "dup", ref="T2")])}
    )

    before = REGISTRY.get_sample_value("reconciler_ambiguous_match_total")

    summary = await ReconciliationService(db, bank, match_policy=MatchPolicy.UNIQUE).run(now=now)

    assert summary.as_dict() == {"checked": 1, "updated": 0, "deleted": 0}
    assert status_of(db, payment.id) == "pending"
    assert REGISTRY.get_sample_value("reconciler_ambiguous_match_total") == before + 1


async def test_payment_settled_elsewhere_is_not_credited_twice(db, now, bank_account, seller, make_payment):
    """If the completion claim loses, the wallet credit of the same unit is rolled back"""
    payment = make_payment(bank_account, seller, amount=286000, transfer_reference="X")
    bank = StubBankClient({str(bank_account.id): FetchResult.success([incoming(286000, "order X")])})
    service = ReconciliationService(db, bank)

    with patch.object(service.payments, "mark_completed", return_value=False):
        summary = await service.run(now=now)

    assert summary.updated == 0
    assert wallet_of(db, seller) == Decimal("5")
    assert db.query(WalletCredit).count() == 0
    assert status_of(db, payment.id) == "pending"


async def test_persistence_error_is_isolated_per_payment(db, now, bank_account, seller, make_payment):
    first = make_payment(bank_account, seller, amount=100, transfer_reference="ONE")
    second = make_payment(bank_account, seller, amount=200, transfer_reference="TWO")
    bank = StubBankClient(
        {str(bank_account.id): FetchResult.success([incoming(100, "ONE", ref="T1"), incoming(200, "TWO", ref="T2")])}
    )
    service = ReconciliationService(db, bank, fallback_exchange_rate=Decimal("100"))
    original = service.holders.credit_wallet
    first_id = first.id
    failed: List[object] = []

    def flaky_credit(holder, amount, payment_id, transaction_reference=None):
        if payment_id == first_id:
            failed.append(payment_id)
            raise OperationalError("UPDATE account_holder", {}, Exception("database is locked"))
        return original(holder, amount, payment_id, transaction_reference)

    with patch.object(service.holders, "credit_wallet", side_effect=flaky_credit):
        summary = await service.run(now=now)

    assert summary.as_dict() == {"checked": 2, "updated": 1, "deleted": 0}
    assert len(failed) == 1
    assert status_of(db, first.id) == "pending"
    assert status_of(db, second.id) == "completed"
    assert wallet_of(db, seller) == Decimal("7")


async def test_unexpected_failure_reports_error_summary(db, now, bank_account, seller, make_payment):
    make_payment(bank_account, seller)
    service = ReconciliationService(db, StubBankClient())

    with patch.object(service.payments, "get_pending", side_effect=RuntimeError("store unavailable")):
        summary = await service.run(now=now)

    assert summary.as_dict() == {"checked": 0, "updated": 0, "deleted": 0, "error": "store unavailable"}


def test_group_by_bank_account_keeps_first_seen_order(db, bank_account, seller, make_payment):
    other = BankAccount(bank_name="VCB", account_number="1", api_url="https://vcb.example/h")
    db.add(other)
    db.commit()
    a = make_payment(bank_account, seller, transfer_reference="A")
    b = make_payment(other, seller, transfer_reference="B")
    c = make_payment(bank_account, seller, transfer_reference="C")

    groups = group_by_bank_account([a, b, c])

    assert list(groups) == [str(bank_account.id), str(other.id)]
    assert [p.transfer_reference for p in groups[str(bank_account.id)][1]] == ["A", "C"]
