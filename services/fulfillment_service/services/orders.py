"""Order creation: one atomic unit of work from cart submission to PENDING order.

Steps, all inside a single transaction:
    1. resolve (or create) the customer
    2. validate stock for every requested variant
    3. snapshot prices and compute the subtotal
    4. compute the delivery fee
    5. allocate a unique order number
    6-7. insert the order and its initial status history entry
    8. per line: insert the line item, decrement stock with a guarded
       UPDATE, and append a SALE inventory log
    9. insert the PENDING payment transaction
    10. commit

The execution timeout bounds steps 1-9 only. The commit runs outside it, so
a commit that became durable is never reported as a failure.

Business errors propagate as typed FulfillmentError subclasses after a
rollback; database failures and the execution timeout surface as
TransactionAborted, which callers may retry.
"""

import asyncio
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.fulfillment_service.errors import (
    FulfillmentError,
    InsufficientStock,
    MissingDeliveryAddress,
    OrderNumberExhausted,
    TransactionAborted,
)
from services.fulfillment_service.models import (
    DeliveryMethod,
    InventoryChangeType,
    InventoryLog,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentTransaction,
    TransactionMethod,
    TransactionStatus,
)
from services.fulfillment_service.schemas import CreateOrderRequest
from services.fulfillment_service.services.customers import resolve_customer
from services.fulfillment_service.services.delivery_fee import (
    DeliveryFeeResult,
    calculate_delivery_fee,
    store_pickup_fee,
)
from services.fulfillment_service.services.order_number import generate_order_number
from services.fulfillment_service.services.order_status import record_initial_status
from services.fulfillment_service.services.stock import (
    ResolvedLine,
    apply_stock_delta,
    current_stock,
    validate_stock,
)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CENTS = Decimal("0.01")


@dataclass
class OrderCreationResult:
    order: Order
    line_items: list[OrderItem]
    transaction: PaymentTransaction
    delivery_fee: DeliveryFeeResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def compute_subtotal(lines: list[ResolvedLine]) -> Decimal:
    subtotal = sum((line.line_total for line in lines), Decimal("0"))
    return subtotal.quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_delivery_fee(
    request: CreateOrderRequest, subtotal: Decimal
) -> DeliveryFeeResult:
    if request.delivery_method == DeliveryMethod.STORE_PICKUP:
        return store_pickup_fee()
    if request.delivery_address is None:
        raise MissingDeliveryAddress(
            "A delivery address is required for home delivery"
        )
    return calculate_delivery_fee(request.delivery_address.zone, subtotal)


async def allocate_order_number(db: AsyncSession) -> str:
    """Return an order number not yet used by any persisted order.

    Candidates are random, so a collision is answered with a fresh
    candidate rather than an increment. The attempt budget bounds the loop.
    """
    max_attempts = get_settings().ORDER_NUMBER_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        candidate = generate_order_number()
        taken = await db.scalar(
            select(Order.id).where(Order.order_number == candidate)
        )
        if taken is None:
            return candidate
        logger.info("Order number %s taken (attempt %d)", candidate, attempt)

    logger.warning(
        "Order number space exhausted after %d attempts; "
        "the 4-digit daily suffix is running out",
        max_attempts,
    )
    raise OrderNumberExhausted(
        "Could not allocate a unique order number, please retry"
    )


def _transaction_method(payment_method: PaymentMethod) -> TransactionMethod:
    if payment_method == PaymentMethod.MOBILE_MONEY:
        return TransactionMethod.MOBILE_MONEY
    return TransactionMethod.CASH


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


async def _create_order_unit(
    db: AsyncSession, request: CreateOrderRequest, actor_id: Optional[str]
) -> OrderCreationResult:
    settings = get_settings()

    # 1. Customer
    customer = await resolve_customer(
        db,
        customer_id=request.customer_id,
        guest_info=request.guest_info,
        save_customer_info=request.save_customer_info,
        actor_user_id=actor_id,
    )

    # 2. Stock
    validation = await validate_stock(db, request.items)
    if not validation.ok:
        raise InsufficientStock(validation.shortages)

    # 3-4. Pricing
    subtotal = compute_subtotal(validation.lines)
    delivery = resolve_delivery_fee(request, subtotal)
    delivery_fee = delivery.fee.quantize(CENTS)
    total = subtotal + delivery_fee

    # 5. Order number
    order_number = await allocate_order_number(db)

    # 6. Order
    order = Order(
        order_number=order_number,
        customer_id=customer.id,
        status=OrderStatus.PENDING,
        payment_method=request.payment_method,
        payment_status=PaymentStatus.PENDING,
        payment_reference=request.payment_reference,
        delivery_method=request.delivery_method,
        delivery_address=(
            request.delivery_address.model_dump()
            if request.delivery_method == DeliveryMethod.HOME_DELIVERY
            else None
        ),
        delivery_zone=delivery.zone,
        delivery_fee=delivery_fee,
        subtotal=subtotal,
        total=total,
        source=request.source,
        notes=request.notes,
    )
    db.add(order)
    await db.flush()

    # 7. Initial history
    record_initial_status(db, order, actor=actor_id)

    # 8. Lines, stock, audit
    line_items: list[OrderItem] = []
    for line in validation.lines:
        item = OrderItem(
            order_id=order.id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            quantity=line.quantity,
            price_at_purchase=line.unit_price.quantize(CENTS),
            product_name=line.product_name,
            variant_details=line.variant_details,
        )
        db.add(item)
        line_items.append(item)

        change = await apply_stock_delta(db, line.variant_id, -line.quantity)
        if change is None:
            # Lost a race after validation
            available = await current_stock(db, line.variant_id)
            raise InsufficientStock(
                [
                    {
                        "variant_id": line.variant_id,
                        "sku": line.sku,
                        "product_name": line.product_name,
                        "requested": line.quantity,
                        "available": available or 0,
                    }
                ]
            )
        previous_quantity, new_quantity = change

        db.add(
            InventoryLog(
                variant_id=line.variant_id,
                change_type=InventoryChangeType.SALE,
                quantity_change=-line.quantity,
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
                reason=f"Sale - Order {order_number}",
                performed_by=actor_id,
                order_id=order.id,
            )
        )

    # 9. Payment intent
    is_mobile_money = request.payment_method == PaymentMethod.MOBILE_MONEY
    transaction = PaymentTransaction(
        order_id=order.id,
        amount=total,
        method=_transaction_method(request.payment_method),
        provider=settings.MOBILE_MONEY_PROVIDER if is_mobile_money else None,
        reference=request.payment_reference,
        status=TransactionStatus.PENDING,
    )
    db.add(transaction)
    await db.flush()

    return OrderCreationResult(
        order=order,
        line_items=line_items,
        transaction=transaction,
        delivery_fee=delivery,
    )


async def create_order(
    db: AsyncSession,
    request: CreateOrderRequest,
    actor: Optional[AuthUser] = None,
) -> OrderCreationResult:
    """Create an order atomically; nothing is persisted unless everything is.

    Raises:
        CustomerNotFound, MissingCustomerInfo, InvalidCustomerInfo,
        VariantNotFound, VariantInactive, InsufficientStock,
        MissingDeliveryAddress, OrderNumberExhausted: business rule failures.
        TransactionAborted: database failure, timeout or any other unexpected
            error; safe to retry.
    """
    actor_id = actor.user_id if actor else None
    timeout = get_settings().ORDER_TRANSACTION_TIMEOUT_SECONDS

    try:
        result = await asyncio.wait_for(
            _create_order_unit(db, request, actor_id), timeout=timeout
        )
        await db.commit()
    except FulfillmentError as exc:
        await db.rollback()
        logger.info("Order rejected (%s): %s", exc.code, exc.message)
        raise
    except asyncio.TimeoutError as exc:
        await db.rollback()
        logger.error("Order transaction timed out after %.1fs", timeout)
        raise TransactionAborted(
            "Order processing timed out, please retry"
        ) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Order transaction aborted: %s", exc)
        raise TransactionAborted(
            "Order could not be saved, please retry"
        ) from exc
    except Exception as exc:
        await db.rollback()
        logger.exception("Order transaction failed unexpectedly")
        raise TransactionAborted(
            "Order could not be saved, please retry"
        ) from exc

    order = result.order
    logger.info(
        "Created order %s: %d lines, subtotal=%s fee=%s total=%s (%s)",
        order.order_number,
        len(result.line_items),
        order.subtotal,
        order.delivery_fee,
        order.total,
        order.delivery_method.value,
        extra={"order_number": order.order_number, "actor": actor_id},
    )
    return result
