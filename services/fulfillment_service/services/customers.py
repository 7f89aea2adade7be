"""Customer resolution for order creation."""

import re
import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.fulfillment_service.errors import (
    CustomerNotFound,
    InvalidCustomerInfo,
    MissingCustomerInfo,
)
from services.fulfillment_service.models import Customer
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def validate_phone(phone: str) -> str:
    """Return the trimmed phone number if it matches the regional format."""
    phone = (phone or "").strip()
    if not re.match(get_settings().PHONE_NUMBER_PATTERN, phone):
        raise InvalidCustomerInfo(
            "Invalid phone number. Expected format: +243XXXXXXXXX or 0XXXXXXXXX"
        )
    return phone


async def resolve_customer(
    db: AsyncSession,
    *,
    customer_id: Optional[uuid.UUID] = None,
    guest_info=None,
    save_customer_info: bool = False,
    actor_user_id: Optional[str] = None,
) -> Customer:
    """Map an order request onto a durable customer record.

    With ``customer_id`` the customer must already exist; its profile is
    overwritten from ``guest_info`` only when ``save_customer_info`` is set.
    Without it, ``guest_info`` is required and a new guest customer is
    created (linked to ``actor_user_id`` when the buyer is signed in).

    Changes are flushed, not committed: the caller owns the transaction.
    """
    if customer_id is not None:
        customer = await db.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFound(f"Customer not found: {customer_id}")

        if save_customer_info and guest_info is not None:
            customer.first_name = guest_info.first_name
            customer.last_name = guest_info.last_name
            customer.email = guest_info.email
            customer.phone = validate_phone(guest_info.phone)
            await db.flush()
            logger.info("Updated profile of customer %s from order", customer.id)
        return customer

    if guest_info is None:
        raise MissingCustomerInfo(
            "Customer information is required: provide customer_id or guest_info"
        )

    customer = Customer(
        first_name=guest_info.first_name,
        last_name=guest_info.last_name,
        email=guest_info.email,
        phone=validate_phone(guest_info.phone),
        is_guest=True,
        user_id=actor_user_id,
    )
    db.add(customer)
    await db.flush()

    logger.info(
        "Created guest customer %s (linked user: %s)", customer.id, actor_user_id
    )
    return customer
