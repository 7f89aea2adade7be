"""Human-readable order numbers: ``PREFIX-YYYYMMDD-NNNN``.

The suffix is random, not a counter. Uniqueness is the caller's job: the
order coordinator checks each candidate inside its transaction and asks for
a fresh one on collision.
"""

import random
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import store_today

SUFFIX_SPACE = 10_000  # 4 digits: at most 10,000 distinct numbers per day


@dataclass(frozen=True)
class ParsedOrderNumber:
    prefix: str
    date: date
    suffix: int


def _pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(prefix)}-(\d{{8}})-(\d{{4}})$")


def generate_order_number(
    on_date: Optional[date] = None, rng: Optional[random.Random] = None
) -> str:
    """Return a candidate order number for ``on_date`` (store-local today by default)."""
    prefix = get_settings().ORDER_NUMBER_PREFIX
    on_date = on_date or store_today()
    suffix = (rng or random).randrange(SUFFIX_SPACE)
    return f"{prefix}-{on_date:%Y%m%d}-{suffix:04d}"


def parse_order_number(order_number: str) -> Optional[ParsedOrderNumber]:
    """Split an order number into its parts, or None if it is malformed."""
    prefix = get_settings().ORDER_NUMBER_PREFIX
    match = _pattern(prefix).match(order_number or "")
    if not match:
        return None
    date_part, suffix_part = match.groups()
    try:
        parsed_date = datetime.strptime(date_part, "%Y%m%d").date()
    except ValueError:
        return None
    return ParsedOrderNumber(prefix=prefix, date=parsed_date, suffix=int(suffix_part))


def is_valid_order_number(order_number: str) -> bool:
    return parse_order_number(order_number) is not None


def format_order_number(order_number: str) -> str:
    """Display form with spaces (``MLA 20250123 0001``); malformed input is returned as-is."""
    if not is_valid_order_number(order_number):
        return order_number
    return order_number.replace("-", " ")
