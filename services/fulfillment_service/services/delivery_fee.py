"""Delivery fee calculation for Kinshasa communes.

Pure functions: no database, no I/O. Fees are in the store currency (USD).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings

FREE_DELIVERY_THRESHOLD = Decimal("100.00")
DEFAULT_DELIVERY_FEE = Decimal("10.00")
PICKUP_ZONE = "N/A"

# Keys are normalized (lower-case, trimmed); spelling variants share a fee.
DELIVERY_ZONES: dict[str, Decimal] = {
    # Primary
    "gombe": Decimal("5.00"),
    "gombé": Decimal("5.00"),
    # Secondary
    "kinshasa": Decimal("7.00"),
    # Tertiary
    "kalamu": Decimal("6.00"),
    "kasa-vubu": Decimal("6.00"),
    "kasa vubu": Decimal("6.00"),
    "kasavubu": Decimal("6.00"),
    "limete": Decimal("6.00"),
    "limété": Decimal("6.00"),
    "lingwala": Decimal("6.00"),
    "barumbu": Decimal("6.00"),
    # Outer
    "lemba": Decimal("8.00"),
    "matete": Decimal("8.00"),
    "ngiri-ngiri": Decimal("8.00"),
    "ngiri ngiri": Decimal("8.00"),
    "ngiringiri": Decimal("8.00"),
    "bumbu": Decimal("8.00"),
    "makala": Decimal("8.00"),
    "selembao": Decimal("8.00"),
    "kimbanseke": Decimal("9.00"),
    "masina": Decimal("9.00"),
    "ndjili": Decimal("9.00"),
    "n'djili": Decimal("9.00"),
    "mont-ngafula": Decimal("9.00"),
    "mont ngafula": Decimal("9.00"),
    "ngaliema": Decimal("9.00"),
}


@dataclass(frozen=True)
class DeliveryFeeResult:
    fee: Decimal
    zone: str
    currency: str
    is_free: bool
    free_delivery_threshold: Decimal
    amount_needed_for_free_delivery: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class DeliveryZone:
    name: str
    fee: Decimal
    currency: str


def _to_decimal(amount) -> Decimal:
    return amount if isinstance(amount, Decimal) else Decimal(str(amount))


def normalize_zone(zone: Optional[str]) -> str:
    return (zone or "").strip().lower()


def calculate_delivery_fee(zone: Optional[str], subtotal) -> DeliveryFeeResult:
    """Return the home delivery fee for ``zone`` at the given subtotal.

    Orders at or above FREE_DELIVERY_THRESHOLD ship free whatever the zone.
    Unknown or missing zones fall back to DEFAULT_DELIVERY_FEE.

    Raises:
        ValueError: if subtotal is negative.
    """
    subtotal = _to_decimal(subtotal)
    if subtotal < 0:
        raise ValueError(f"Subtotal cannot be negative: {subtotal}")

    currency = get_settings().STORE_CURRENCY

    if is_delivery_free(subtotal):
        return DeliveryFeeResult(
            fee=Decimal("0.00"),
            zone=zone or PICKUP_ZONE,
            currency=currency,
            is_free=True,
            free_delivery_threshold=FREE_DELIVERY_THRESHOLD,
        )

    fee = DELIVERY_ZONES.get(normalize_zone(zone), DEFAULT_DELIVERY_FEE)
    return DeliveryFeeResult(
        fee=fee,
        zone=zone or "Unknown",
        currency=currency,
        is_free=False,
        free_delivery_threshold=FREE_DELIVERY_THRESHOLD,
        amount_needed_for_free_delivery=amount_needed_for_free_delivery(subtotal),
    )


def store_pickup_fee() -> DeliveryFeeResult:
    """Fee result for orders collected in store: always free, no zone."""
    return DeliveryFeeResult(
        fee=Decimal("0.00"),
        zone=PICKUP_ZONE,
        currency=get_settings().STORE_CURRENCY,
        is_free=True,
        free_delivery_threshold=Decimal("0.00"),
    )


def list_delivery_zones() -> list[DeliveryZone]:
    """Zones for display, cheapest first, then alphabetically."""
    currency = get_settings().STORE_CURRENCY
    zones = [
        DeliveryZone(name=name[:1].upper() + name[1:], fee=fee, currency=currency)
        for name, fee in DELIVERY_ZONES.items()
    ]
    return sorted(zones, key=lambda z: (z.fee, z.name))


def is_delivery_free(subtotal) -> bool:
    return _to_decimal(subtotal) >= FREE_DELIVERY_THRESHOLD


def amount_needed_for_free_delivery(subtotal) -> Decimal:
    """How much more the customer must spend to qualify; 0 once qualified."""
    subtotal = _to_decimal(subtotal)
    if subtotal >= FREE_DELIVERY_THRESHOLD:
        return Decimal("0.00")
    return FREE_DELIVERY_THRESHOLD - subtotal
