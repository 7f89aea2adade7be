"""
Payment provider seam for mobile money.

The provider is an opaque collaborator: orders are created with a PENDING
transaction first, and the provider is only called afterwards to initiate
or verify a payment. Provides:
- PaymentProvider, the interface the engine depends on
- HttpPaymentProvider, an async httpx client for the aggregator API
- initiate/verify operations that apply provider results to a transaction
"""

import abc
import enum
import secrets
import time
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.fulfillment_service.errors import (
    MissingPaymentReference,
    PaymentProviderError,
    TransactionNotFound,
    TransactionNotPending,
    UnsupportedPaymentMethod,
)
from services.fulfillment_service.models import (
    Order,
    PaymentStatus,
    PaymentTransaction,
    TransactionMethod,
    TransactionStatus,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


class ProviderPaymentStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"


@dataclass
class PaymentVerification:
    """Result of asking the provider about one payment."""

    reference: str
    status: ProviderPaymentStatus


# provider status -> (transaction status, order payment status)
VERIFICATION_OUTCOMES = {
    ProviderPaymentStatus.SUCCESS: (TransactionStatus.COMPLETED, PaymentStatus.PAID),
    ProviderPaymentStatus.FAILED: (TransactionStatus.FAILED, PaymentStatus.FAILED),
    ProviderPaymentStatus.PENDING: (TransactionStatus.PENDING, PaymentStatus.PENDING),
}


def generate_payment_reference() -> str:
    """Client-side reference, e.g. ``MM-1729789234567-ABC123``."""
    return f"MM-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


class PaymentProvider(abc.ABC):
    """What the engine needs from a mobile money provider."""

    @abc.abstractmethod
    async def initiate(self, order: Order, *, phone: Optional[str] = None) -> str:
        """Start collecting ``order.total`` and return the payment reference."""

    @abc.abstractmethod
    async def verify(self, reference: str) -> PaymentVerification:
        """Return the provider's current view of a payment."""


class HttpPaymentProvider(PaymentProvider):
    """Async client for the mobile money aggregator HTTP API."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        timeout: float = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.PAYMENT_PROVIDER_URL).rstrip("/")
        self.api_key = api_key or settings.PAYMENT_PROVIDER_API_KEY
        self.timeout = timeout or settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS
        self._client = client
        self._headers = {"Content-Type": "application/json"}
        if self.api_key:
            self._headers["Authorization"] = f"Bearer {self.api_key}"

    async def _request(self, method: str, endpoint: str, json_data: dict = None) -> dict:
        """Make a request to the provider and return the decoded JSON body."""
        url = f"{self.base_url}{endpoint}"
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, headers=self._headers, json=json_data
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, headers=self._headers, json=json_data
                    )
        except httpx.HTTPError as exc:
            logger.error("Payment provider unreachable: %s", exc)
            raise PaymentProviderError(f"Payment provider unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            logger.error(
                "Payment provider error: %s - %s", response.status_code, data
            )
            raise PaymentProviderError(
                data.get("message", f"Provider returned {response.status_code}"),
                response_data=data,
            )
        return data

    async def initiate(self, order: Order, *, phone: Optional[str] = None) -> str:
        reference = generate_payment_reference()
        data = await self._request(
            "POST",
            "/payments",
            json_data={
                "reference": reference,
                "order_number": order.order_number,
                "amount": str(order.total),
                "currency": get_settings().STORE_CURRENCY,
                "phone": phone,
            },
        )
        return data.get("reference") or reference

    async def verify(self, reference: str) -> PaymentVerification:
        data = await self._request("GET", f"/payments/{reference}")
        raw_status = str(data.get("status", "")).upper()
        try:
            status = ProviderPaymentStatus(raw_status)
        except ValueError:
            # Anything the provider has not settled yet stays pending
            status = ProviderPaymentStatus.PENDING
        return PaymentVerification(reference=reference, status=status)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def _load_transaction(
    db: AsyncSession, transaction_id: uuid.UUID
) -> PaymentTransaction:
    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.id == transaction_id)
        .options(
            selectinload(PaymentTransaction.order).selectinload(Order.customer)
        )
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise TransactionNotFound(f"Transaction not found: {transaction_id}")
    return transaction


def _ensure_pending(transaction: PaymentTransaction) -> None:
    # COMPLETED, FAILED and REFUNDED are final
    if transaction.status != TransactionStatus.PENDING:
        raise TransactionNotPending(
            f"Transaction {transaction.id} is already {transaction.status.value}"
        )


async def initiate_transaction_payment(
    db: AsyncSession, transaction_id: uuid.UUID, provider: PaymentProvider
) -> PaymentTransaction:
    """Ask the provider to collect a pending transaction and store its reference.

    Raises:
        TransactionNotFound: unknown transaction.
        TransactionNotPending: the transaction is already settled.
        UnsupportedPaymentMethod: the transaction is not a mobile money one.
    """
    try:
        transaction = await _load_transaction(db, transaction_id)
        _ensure_pending(transaction)
        if transaction.method != TransactionMethod.MOBILE_MONEY:
            raise UnsupportedPaymentMethod(
                f"Transaction {transaction_id} is paid by "
                f"{transaction.method.value}, not mobile money"
            )
        order = transaction.order
        reference = await provider.initiate(order, phone=order.customer.phone)

        transaction.reference = reference
        order.payment_reference = reference
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Initiated payment %s for order %s (%s)",
        reference,
        order.order_number,
        transaction.amount,
    )
    return transaction


async def verify_transaction_payment(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    provider: PaymentProvider,
    *,
    verified_by: Optional[str] = None,
) -> PaymentTransaction:
    """Apply the provider's verdict to a transaction and its order.

    SUCCESS completes the transaction and marks the order PAID, FAILED marks
    both failed, anything else leaves them pending. Only PENDING transactions
    are verified; a settled one raises TransactionNotPending before the
    provider is called.
    """
    try:
        transaction = await _load_transaction(db, transaction_id)
        _ensure_pending(transaction)
        if not transaction.reference:
            raise MissingPaymentReference(
                f"Transaction {transaction_id} has no payment reference to verify"
            )

        verification = await provider.verify(transaction.reference)
        transaction_status, payment_status = VERIFICATION_OUTCOMES[
            verification.status
        ]

        transaction.status = transaction_status
        transaction.order.payment_status = payment_status
        if verification.status == ProviderPaymentStatus.SUCCESS:
            transaction.verified_at = utc_now()
            transaction.verified_by = verified_by
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Verified payment %s for order %s: %s",
        transaction.reference,
        transaction.order.order_number,
        verification.status.value,
        extra={"transaction_id": transaction.id, "actor": verified_by},
    )
    return transaction


def get_payment_provider() -> PaymentProvider:
    """FastAPI dependency returning the configured provider client."""
    return HttpPaymentProvider()
