"""Domain models - pure Python dataclasses representing reconciliation entities"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class Direction(str, Enum):
    """Whether funds moved into or out of the monitored account"""

    IN = "IN"
    OUT = "OUT"


class TransactionFormat(str, Enum):
    """Known upstream transaction-history shapes"""

    LEDGER_ARRAY = "ledger_array"  # bare list of records with credit/debit legs
    ENVELOPE = "envelope"  # {code, des, transactions: [...], nextIndex}


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class MatchPolicy(str, Enum):
    """How to resolve several transactions satisfying the same intent"""

    FIRST = "first"  # first in upstream order wins
    UNIQUE = "unique"  # ambiguous candidates produce no match


class FetchStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"
    UPSTREAM_ERROR = "upstream_error"


@dataclass(frozen=True)
class Transaction:
    """Canonical bank ledger movement, independent of upstream shape"""

    external_id: str
    amount: int
    description: str
    date: str
    time: str
    direction: Direction


@dataclass
class PaymentIntent:
    """Expected incoming transfer awaiting confirmation"""

    payment_id: uuid.UUID
    expected_amount: int
    transfer_reference: str
    amount: int
    credited_amount: Optional[Decimal]
    seller_id: Optional[uuid.UUID]
    bank_account_id: uuid.UUID


@dataclass
class FetchResult:
    """Outcome of one upstream history read"""

    status: FetchStatus
    transactions: List[Transaction] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK

    @classmethod
    def success(cls, transactions: List[Transaction]) -> "FetchResult":
        return cls(status=FetchStatus.OK, transactions=transactions)

    @classmethod
    def skipped(cls, reason: str) -> "FetchResult":
        return cls(status=FetchStatus.SKIPPED, error=reason)

    @classmethod
    def failed(cls, error: str) -> "FetchResult":
        return cls(status=FetchStatus.FAILED, error=error)

    @classmethod
    def upstream_error(cls, error: str) -> "FetchResult":
        return cls(status=FetchStatus.UPSTREAM_ERROR, error=error)


@dataclass
class ReconciliationSummary:
    """Counts reported to the scheduler after one pass"""

    checked: int = 0
    updated: int = 0
    deleted: int = 0
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "checked": self.checked,
            "updated": self.updated,
            "deleted": self.deleted,
        }
        if self.error is not None:
            result["error"] = self.error
        return result
