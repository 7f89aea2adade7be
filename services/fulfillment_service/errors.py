"""Business-rule errors raised by the fulfillment engine.

Every error carries a stable ``code`` and the HTTP status the API layer
renders it with. Services raise these; the app registers one handler that
turns them into ``{"code": ..., "message": ...}`` responses.
"""

from typing import Optional


class FulfillmentError(Exception):
    """Base class for fulfillment business errors."""

    code = "FULFILLMENT_ERROR"
    status_code = 400

    def __init__(self, message: str, *, code: str = None, status_code: int = None):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Customer resolution
# ---------------------------------------------------------------------------


class CustomerNotFound(FulfillmentError):
    code = "CUSTOMER_NOT_FOUND"
    status_code = 404


class MissingCustomerInfo(FulfillmentError):
    code = "MISSING_CUSTOMER_INFO"
    status_code = 400


class InvalidCustomerInfo(FulfillmentError):
    code = "INVALID_CUSTOMER_INFO"
    status_code = 400


# ---------------------------------------------------------------------------
# Catalog / stock
# ---------------------------------------------------------------------------


class VariantNotFound(FulfillmentError):
    code = "VARIANT_NOT_FOUND"
    status_code = 404


class VariantInactive(FulfillmentError):
    code = "VARIANT_INACTIVE"
    status_code = 409


class InsufficientStock(FulfillmentError):
    """Requested quantities exceed what is on hand.

    ``shortages`` lists one dict per short variant with
    variant_id, sku, product_name, requested and available.
    """

    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, shortages: list[dict], message: Optional[str] = None):
        self.shortages = shortages
        if message is None:
            skus = ", ".join(str(s.get("sku") or s["variant_id"]) for s in shortages)
            message = f"Insufficient stock for: {skus}"
        super().__init__(message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["shortages"] = [
            {**s, "variant_id": str(s["variant_id"])} for s in self.shortages
        ]
        return body


class NegativeStock(FulfillmentError):
    code = "NEGATIVE_STOCK"
    status_code = 409


# ---------------------------------------------------------------------------
# Order creation
# ---------------------------------------------------------------------------


class MissingDeliveryAddress(FulfillmentError):
    code = "MISSING_DELIVERY_ADDRESS"
    status_code = 400


class OrderNumberExhausted(FulfillmentError):
    code = "ORDER_NUMBER_EXHAUSTED"
    status_code = 503


class TransactionAborted(FulfillmentError):
    """The unit of work was rolled back for a non-business reason. Safe to retry."""

    code = "TRANSACTION_ABORTED"
    status_code = 503
    retryable = True


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------


class OrderNotFound(FulfillmentError):
    code = "ORDER_NOT_FOUND"
    status_code = 404


class OrderAccessDenied(FulfillmentError):
    code = "ORDER_ACCESS_DENIED"
    status_code = 403


class InvalidTransition(FulfillmentError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status, to_status, allowed=()):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = list(allowed)
        allowed_text = ", ".join(s.value for s in self.allowed) or "none"
        super().__init__(
            f"Cannot transition from {from_status.value} to {to_status.value}. "
            f"Allowed: {allowed_text}"
        )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class TransactionNotFound(FulfillmentError):
    code = "TRANSACTION_NOT_FOUND"
    status_code = 404


class PaymentProviderError(FulfillmentError):
    """The external payment provider failed or returned an unusable response."""

    code = "PAYMENT_PROVIDER_ERROR"
    status_code = 502

    def __init__(self, message: str, response_data: dict = None):
        self.response_data = response_data or {}
        super().__init__(message)


class MissingPaymentReference(FulfillmentError):
    code = "MISSING_PAYMENT_REFERENCE"
    status_code = 400


class TransactionNotPending(FulfillmentError):
    """The transaction is already settled (completed, failed or refunded)."""

    code = "TRANSACTION_NOT_PENDING"
    status_code = 409


class UnsupportedPaymentMethod(FulfillmentError):
    code = "UNSUPPORTED_PAYMENT_METHOD"
    status_code = 409
