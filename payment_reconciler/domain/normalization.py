"""Upstream format detection and normalization into canonical transactions"""

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from payment_reconciler.domain.exceptions import InvalidTransactionDataError, UpstreamStatusError
from payment_reconciler.domain.models import Direction, Transaction, TransactionFormat
from payment_reconciler.utils.date_utils import split_date_time

logger = logging.getLogger(__name__)

LEDGER_ARRAY_FIELDS = ("refNo", "tranId", "creditAmount", "debitAmount")
DEFAULT_SUCCESS_CODE = "00"

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")

BLANK_TRANSACTION = Transaction(
    external_id="",
    amount=0,
    description="",
    date="",
    time="",
    direction=Direction.OUT,
)


def detect_format(payload: Any) -> TransactionFormat:
    """
    Classify a decoded upstream payload by structure only.

    A list whose first element exposes any ledger-array field is a ledger array;
    everything else (including empty or ambiguous payloads) is treated as the envelope shape.
    """
    if isinstance(payload, list) and payload and isinstance(payload[0], Mapping):
        if any(name in payload[0] for name in LEDGER_ARRAY_FIELDS):
            return TransactionFormat.LEDGER_ARRAY
    return TransactionFormat.ENVELOPE


def parse_amount(value: Any) -> int:
    """
    Parse an upstream amount into a non-negative integer.

    Thousands separators are stripped and only the leading integer is kept,
    so "10,000" -> 10000 and "286000.00" -> 286000. Missing or unparseable -> 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return abs(int(value))
    match = _LEADING_INT.match(str(value).replace(",", ""))
    if not match:
        return 0
    return abs(int(match.group()))


def join_narrative(*fragments: Optional[str]) -> str:
    """Concatenate narrative fields with single spaces, dropping empty ones"""
    parts = [str(f).strip() for f in fragments if f is not None]
    return " ".join(p for p in parts if p)


def _first_present(record: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = record.get(name)
        if value not in (None, ""):
            return str(value)
    return ""


def normalize_ledger_record(record: Mapping[str, Any]) -> Transaction:
    """Ledger-array record: amount is the larger leg, direction IN when the credit leg is positive"""
    credit = parse_amount(record.get("creditAmount"))
    debit = parse_amount(record.get("debitAmount"))
    date, time = split_date_time(_first_present(record, "transactionDate", "postingDate"))

    return Transaction(
        external_id=_first_present(record, "refNo", "tranId"),
        amount=max(credit, debit),
        description=join_narrative(record.get("description"), record.get("addDescription")),
        date=date,
        time=time,
        direction=Direction.IN if credit > 0 else Direction.OUT,
    )


def normalize_envelope_record(record: Mapping[str, Any]) -> Transaction:
    """Envelope record: direction comes from the CD sign or the DorCCode marker"""
    incoming = record.get("CD") == "+" or record.get("DorCCode") == "C"

    return Transaction(
        external_id=_first_present(record, "Reference", "SeqNo"),
        amount=parse_amount(record.get("Amount")),
        description=join_narrative(record.get("Description"), record.get("Remark")),
        date=_first_present(record, "tranDate", "TransactionDate"),
        time=_first_present(record, "PCTime", "PostingTime"),
        direction=Direction.IN if incoming else Direction.OUT,
    )


NORMALIZERS: Dict[TransactionFormat, Callable[[Mapping[str, Any]], Transaction]] = {
    TransactionFormat.LEDGER_ARRAY: normalize_ledger_record,
    TransactionFormat.ENVELOPE: normalize_envelope_record,
}


def normalize_record(fmt: TransactionFormat, record: Any) -> Transaction:
    """Normalize one record; a malformed record degrades to a blank transaction"""
    try:
        return NORMALIZERS[fmt](record)
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        logger.warning(
            f"Malformed {fmt.value} record replaced with blank transaction: {e}",
            extra={"format": fmt.value},
        )
        return BLANK_TRANSACTION


def _envelope_records(payload: Any, success_code: str) -> List[Any]:
    if isinstance(payload, list):
        if payload:
            raise InvalidTransactionDataError("Unrecognized transaction list: no known ledger fields")
        return []
    if not isinstance(payload, Mapping):
        raise InvalidTransactionDataError(f"Unexpected payload type: {type(payload).__name__}")

    code = payload.get("code")
    if code is not None and str(code) != success_code:
        raise UpstreamStatusError(str(code), payload.get("des"))

    records = payload.get("transactions") or []
    if not isinstance(records, list):
        raise InvalidTransactionDataError("Envelope 'transactions' field is not a list")
    return records


def decode_payload(payload: Any, success_code: str = DEFAULT_SUCCESS_CODE) -> List[Transaction]:
    """
    Detect the payload's shape and normalize every record in upstream order.

    Raises:
        UpstreamStatusError: Envelope status code present and not the success code
        InvalidTransactionDataError: Payload is neither a ledger array nor an envelope
    """
    fmt = detect_format(payload)
    records = payload if fmt == TransactionFormat.LEDGER_ARRAY else _envelope_records(payload, success_code)

    logger.info(
        f"Detected {fmt.value} format with {len(records)} transaction(s)",
        extra={"format": fmt.value, "record_count": len(records)},
    )
    return [normalize_record(fmt, record) for record in records]
