"""Wallet credit amount resolution for settled payments"""

from decimal import Decimal

from payment_reconciler.domain.models import PaymentIntent


def resolve_credit_amount(intent: PaymentIntent, fallback_exchange_rate: Decimal) -> Decimal:
    """
    Amount to add to the seller's wallet, in wallet currency.

    Uses the intent's explicit credited amount when present; otherwise converts the
    primary amount with the fixed fallback rate (local units per wallet unit).
    """
    if intent.credited_amount is not None:
        return Decimal(intent.credited_amount)
    if fallback_exchange_rate <= 0:
        raise ValueError("fallback_exchange_rate must be positive")
    return Decimal(intent.amount) / Decimal(fallback_exchange_rate)
