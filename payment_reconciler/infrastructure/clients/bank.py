"""Bank API HTTP client for fetching transaction history per monitored account"""

import logging
import time
from typing import Optional

import httpx

from payment_reconciler.config import settings
from payment_reconciler.domain.exceptions import InvalidTransactionDataError, UpstreamStatusError
from payment_reconciler.domain.models import FetchResult
from payment_reconciler.domain.normalization import decode_payload
from payment_reconciler.infrastructure.database.models import BankAccount
from payment_reconciler.infrastructure.observability.metrics import (
    bank_fetch_failures_counter,
    bank_fetch_latency_histogram,
)

logger = logging.getLogger(__name__)

RESPONSE_EXCERPT_CHARS = 500


class BankClient:
    """Client for the per-account bank transaction history endpoint"""

    def __init__(
        self,
        timeout: float | None = None,
        success_code: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or settings.bank_http_timeout_seconds
        self.success_code = success_code or settings.envelope_success_code
        self.transport = transport

    async def fetch_transactions(self, bank_account: BankAccount) -> FetchResult:
        """
        Fetch and normalize the account's recent transaction history.

        Never raises: a missing endpoint yields a SKIPPED result, and timeouts,
        HTTP errors, malformed bodies or envelope error codes yield a FAILED or
        UPSTREAM_ERROR result carrying the diagnostic message.
        """
        api_url = (bank_account.api_url or "").strip()
        context = {"bank_account_id": str(bank_account.id), "bank_name": bank_account.bank_name}

        if not api_url:
            logger.debug("Bank account has no API URL configured", extra=context)
            return FetchResult.skipped("no API URL configured")

        start_time = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(api_url)
                response.raise_for_status()
                payload = response.json()

            return FetchResult.success(decode_payload(payload, success_code=self.success_code))

        except httpx.TimeoutException:
            bank_fetch_failures_counter.labels(reason="timeout").inc()
            message = f"Bank API timeout after {self.timeout}s"
            logger.error(message, extra=context)
            return FetchResult.failed(message)

        except httpx.HTTPStatusError as e:
            bank_fetch_failures_counter.labels(reason="http_status").inc()
            message = f"Bank API error: {e.response.status_code}"
            logger.error(
                message,
                extra={
                    **context,
                    "status_code": e.response.status_code,
                    "response_body": e.response.text[:RESPONSE_EXCERPT_CHARS],
                },
            )
            return FetchResult.failed(message)

        except (httpx.RequestError, httpx.InvalidURL) as e:
            bank_fetch_failures_counter.labels(reason="transport").inc()
            message = f"Bank API unreachable: {e}"
            logger.error(message, extra=context)
            return FetchResult.failed(message)

        except UpstreamStatusError as e:
            bank_fetch_failures_counter.labels(reason="upstream_code").inc()
            logger.warning(
                f"Bank API returned error: {e.message}",
                extra={**context, "upstream_code": e.code},
            )
            return FetchResult.upstream_error(str(e))

        except (InvalidTransactionDataError, ValueError) as e:
            bank_fetch_failures_counter.labels(reason="malformed").inc()
            message = f"Invalid transaction data from bank: {e}"
            logger.error(message, extra=context)
            return FetchResult.failed(message)

        finally:
            bank_fetch_latency_histogram.observe(time.perf_counter() - start_time)
