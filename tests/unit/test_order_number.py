"""Unit tests for order number generation and parsing."""

import random
import re
from datetime import date

import pytest
from services.fulfillment_service.services.order_number import (
    format_order_number,
    generate_order_number,
    is_valid_order_number,
    parse_order_number,
)


@pytest.mark.unit
def test_generated_number_has_prefix_date_and_four_digits():
    number = generate_order_number(on_date=date(2025, 1, 23))

    assert re.fullmatch(r"MLA-20250123-\d{4}", number)


@pytest.mark.unit
def test_suffix_is_zero_padded():
    class FixedRandom(random.Random):
        def randrange(self, *args, **kwargs):
            return 7

    number = generate_order_number(on_date=date(2025, 1, 23), rng=FixedRandom())

    assert number == "MLA-20250123-0007"


@pytest.mark.unit
def test_default_date_is_store_today():
    number = generate_order_number()

    assert is_valid_order_number(number)


@pytest.mark.unit
def test_parse_round_trip():
    parsed = parse_order_number("MLA-20250123-0042")

    assert parsed.prefix == "MLA"
    assert parsed.date == date(2025, 1, 23)
    assert parsed.suffix == 42


@pytest.mark.unit
@pytest.mark.parametrize(
    "value",
    ["", "MLA-2025012-0001", "XYZ-20250123-0001", "MLA-20251340-0001", "MLA-20250123-01"],
)
def test_malformed_numbers_rejected(value):
    assert parse_order_number(value) is None
    assert is_valid_order_number(value) is False


@pytest.mark.unit
def test_format_for_display():
    assert format_order_number("MLA-20250123-0001") == "MLA 20250123 0001"
    assert format_order_number("not-a-number") == "not-a-number"
