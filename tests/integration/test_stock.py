"""Integration tests for stock validation and the guarded stock UPDATE."""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
from services.fulfillment_service.errors import VariantInactive, VariantNotFound
from services.fulfillment_service.services.stock import (
    apply_stock_delta,
    current_stock,
    validate_stock,
)
from tests.factories import seed_variant


def _line(variant_id, quantity):
    return SimpleNamespace(variant_id=variant_id, quantity=quantity)


# ---------------------------------------------------------------------------
# validate_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_validate_stock_resolves_price_snapshot(db_session):
    variant = await seed_variant(
        db_session, stock=5, base_price="40.00", additional_price="2.50"
    )

    validation = await validate_stock(db_session, [_line(variant.id, 2)])

    assert validation.ok is True
    assert validation.shortages == []
    [line] = validation.lines
    assert line.unit_price == Decimal("42.50")
    assert line.line_total == Decimal("85.00")
    assert line.available == 5
    assert line.variant_details["sku"] == variant.sku


@pytest.mark.asyncio
@pytest.mark.integration
async def test_validate_stock_reports_every_shortage(db_session):
    short = await seed_variant(db_session, stock=1)
    plenty = await seed_variant(db_session, stock=20)
    empty = await seed_variant(db_session, stock=0)

    validation = await validate_stock(
        db_session,
        [_line(short.id, 2), _line(plenty.id, 3), _line(empty.id, 1)],
    )

    assert validation.ok is False
    assert {s["variant_id"] for s in validation.shortages} == {short.id, empty.id}
    shortage = next(s for s in validation.shortages if s["variant_id"] == short.id)
    assert shortage["requested"] == 2
    assert shortage["available"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_duplicate_lines_are_merged_before_comparison(db_session):
    variant = await seed_variant(db_session, stock=3)

    validation = await validate_stock(
        db_session, [_line(variant.id, 2), _line(variant.id, 2)]
    )

    assert validation.ok is False
    assert validation.shortages[0]["requested"] == 4
    assert len(validation.lines) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_variant_raises(db_session):
    with pytest.raises(VariantNotFound):
        await validate_stock(db_session, [_line(uuid.uuid4(), 1)])


@pytest.mark.asyncio
@pytest.mark.integration
async def test_inactive_variant_raises(db_session):
    variant = await seed_variant(db_session, is_active=False)

    with pytest.raises(VariantInactive):
        await validate_stock(db_session, [_line(variant.id, 1)])


# ---------------------------------------------------------------------------
# apply_stock_delta
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_apply_stock_delta_returns_previous_and_new(db_session):
    variant = await seed_variant(db_session, stock=5)

    change = await apply_stock_delta(db_session, variant.id, -3)
    await db_session.commit()

    assert change == (5, 2)
    assert await current_stock(db_session, variant.id) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_apply_stock_delta_refuses_to_go_negative(db_session):
    variant = await seed_variant(db_session, stock=2)

    assert await apply_stock_delta(db_session, variant.id, -3) is None
    await db_session.commit()

    assert await current_stock(db_session, variant.id) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_apply_stock_delta_to_exactly_zero(db_session):
    variant = await seed_variant(db_session, stock=2)

    assert await apply_stock_delta(db_session, variant.id, -2) == (2, 0)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_apply_stock_delta_unknown_variant(db_session):
    assert await apply_stock_delta(db_session, uuid.uuid4(), 1) is None
