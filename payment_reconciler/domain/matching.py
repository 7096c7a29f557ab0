"""Matching canonical transactions against outstanding payment intents"""

from typing import Iterable, List, Optional

from payment_reconciler.domain.exceptions import AmbiguousMatchError
from payment_reconciler.domain.models import Direction, MatchPolicy, PaymentIntent, Transaction


def transaction_satisfies(intent: PaymentIntent, transaction: Transaction) -> bool:
    """
    A transaction settles an intent when all three hold:
    - exact integer amount equality (no tolerance)
    - the transaction is incoming
    - the case-folded description contains the case-folded transfer reference
    """
    reference = (intent.transfer_reference or "").casefold()
    if not reference or not transaction.description:
        return False

    return (
        transaction.amount == intent.expected_amount
        and transaction.direction == Direction.IN
        and reference in transaction.description.casefold()
    )


def find_matching_transaction(
    intent: PaymentIntent,
    transactions: Iterable[Transaction],
    policy: MatchPolicy = MatchPolicy.FIRST,
) -> Optional[Transaction]:
    """
    Scan transactions in upstream order and return the one settling the intent.

    With MatchPolicy.FIRST the first satisfying transaction wins and the rest are
    never inspected. With MatchPolicy.UNIQUE, more than one candidate raises
    AmbiguousMatchError.
    """
    if policy == MatchPolicy.FIRST:
        return next((t for t in transactions if transaction_satisfies(intent, t)), None)

    candidates: List[Transaction] = [t for t in transactions if transaction_satisfies(intent, t)]
    if len(candidates) > 1:
        raise AmbiguousMatchError(intent.payment_id, [t.external_id for t in candidates])
    return candidates[0] if candidates else None
