"""Domain-specific exceptions"""

from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class BankAPIError(DomainException):
    """Bank API returned an error or is unavailable"""

    pass


class UpstreamStatusError(BankAPIError):
    """Enveloped response carried a non-success status code"""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message
        super().__init__(f"Bank API returned code {code}: {message or 'no message'}")


class InvalidTransactionDataError(DomainException):
    """Transaction payload is not one of the recognized shapes"""

    pass


class AmbiguousMatchError(DomainException):
    """Several transactions satisfy one payment intent under the unique policy"""

    def __init__(self, payment_id, candidate_ids: List[str]):
        self.payment_id = payment_id
        self.candidate_ids = candidate_ids
        super().__init__(f"{len(candidate_ids)} transactions satisfy payment {payment_id}")
