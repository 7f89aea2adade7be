"""Integration tests for the storefront endpoints."""

import uuid

import pytest
from jose import jwt
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from services.fulfillment_service.models import Customer
from tests.factories import order_payload, seed_variant


def _bearer(user_id: str, role: str = "customer") -> dict:
    settings = get_settings()
    token = jwt.encode(
        {"sub": user_id, "email": "buyer@example.com", "role": role},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_guest_checkout(client, db_session):
    """POST /orders: guest order with home delivery below the free threshold."""
    variant = await seed_variant(db_session, stock=10, base_price="40.00")

    response = await client.post("/orders", json=order_payload([(variant.id, 2)]))

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["order"]["status"] == "PENDING"
    assert data["order"]["order_number"].startswith("MLA-")
    assert data["order"]["subtotal"] == 80.0
    assert data["order"]["delivery_fee"] == 5.0
    assert data["order"]["total"] == 85.0
    assert data["delivery_fee"]["zone"] == "Gombe"
    assert data["delivery_fee"]["is_free"] is False
    assert data["delivery_fee"]["amount_needed_for_free_delivery"] == 20.0
    assert data["transaction"]["status"] == "PENDING"
    assert data["transaction"]["amount"] == 85.0
    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_signed_in_checkout_links_customer_to_user(client, db_session):
    variant = await seed_variant(db_session, stock=10)

    response = await client.post(
        "/orders",
        json=order_payload([(variant.id, 1)]),
        headers=_bearer("user-9"),
    )

    assert response.status_code == 201, response.text
    customer = await db_session.get(
        Customer, uuid.UUID(response.json()["order"]["customer_id"])
    )
    assert customer.user_id == "user-9"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_token_checks_out_as_guest(client, db_session):
    variant = await seed_variant(db_session, stock=10)

    response = await client.post(
        "/orders",
        json=order_payload([(variant.id, 1)]),
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 201, response.text
    customer = await db_session.get(
        Customer, uuid.UUID(response.json()["order"]["customer_id"])
    )
    assert customer.user_id is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_insufficient_stock_returns_shortages(client, db_session):
    variant = await seed_variant(db_session, stock=1)

    response = await client.post("/orders", json=order_payload([(variant.id, 3)]))

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "INSUFFICIENT_STOCK"
    assert data["shortages"] == [
        {
            "variant_id": str(variant.id),
            "sku": variant.sku,
            "product_name": data["shortages"][0]["product_name"],
            "requested": 3,
            "available": 1,
        }
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_phone_rejected(client, db_session):
    variant = await seed_variant(db_session, stock=1)
    payload = order_payload([(variant.id, 1)])
    payload["guest_info"]["phone"] = "12345"

    response = await client.post("/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CUSTOMER_INFO"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_missing_address_rejected(client, db_session):
    variant = await seed_variant(db_session, stock=1)

    response = await client.post(
        "/orders", json=order_payload([(variant.id, 1)], delivery_address=None)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_DELIVERY_ADDRESS"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_variant_is_404(client):
    response = await client.post("/orders", json=order_payload([(uuid.uuid4(), 1)]))

    assert response.status_code == 404
    assert response.json()["code"] == "VARIANT_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("quantity", [0, 101])
async def test_out_of_range_quantity_is_422(client, quantity):
    response = await client.post(
        "/orders", json=order_payload([(uuid.uuid4(), quantity)])
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_cart_is_422(client):
    response = await client.post("/orders", json=order_payload([]))

    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


async def _place(client, db_session, email="grace@example.com"):
    variant = await seed_variant(db_session, stock=5)
    payload = order_payload([(variant.id, 1)])
    payload["guest_info"]["email"] = email
    response = await client.post("/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["order"]["order_number"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_track_order_by_email(client, db_session):
    order_number = await _place(client, db_session)

    response = await client.get(
        f"/orders/track/{order_number}", params={"email": "Grace@Example.com"}
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["order_number"] == order_number
    assert data["display_number"] == order_number.replace("-", " ")
    assert len(data["items"]) == 1
    assert [h["to_status"] for h in data["status_history"]] == ["PENDING"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_track_order_by_local_phone_format(client, db_session):
    order_number = await _place(client, db_session)

    response = await client.get(
        f"/orders/track/{order_number.lower()}", params={"phone": "0812345678"}
    )

    assert response.status_code == 200, response.text


@pytest.mark.asyncio
@pytest.mark.integration
async def test_track_order_with_wrong_contact_is_403(client, db_session):
    order_number = await _place(client, db_session)

    response = await client.get(
        f"/orders/track/{order_number}", params={"email": "someone@example.com"}
    )

    assert response.status_code == 403
    assert response.json()["code"] == "ORDER_ACCESS_DENIED"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_track_unknown_order_is_404(client):
    response = await client.get(
        "/orders/track/MLA-20250123-9999", params={"email": "grace@example.com"}
    )

    assert response.status_code == 404
    assert response.json()["code"] == "ORDER_NOT_FOUND"


# ---------------------------------------------------------------------------
# Customer order history
# ---------------------------------------------------------------------------


async def _place_signed_in(client, db_session, user_id="user-9") -> str:
    variant = await seed_variant(db_session, stock=5)
    response = await client.post(
        "/orders",
        json=order_payload([(variant.id, 1)]),
        headers=_bearer(user_id),
    )
    assert response.status_code == 201, response.text
    return response.json()["order"]["customer_id"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_lists_own_orders(client, db_session, act_as):
    customer_id = await _place_signed_in(client, db_session)
    act_as(AuthUser(user_id="user-9", role="customer"))

    response = await client.get(f"/orders/customer/{customer_id}")

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["total"] == 1
    assert data["page"] == 1
    assert data["total_pages"] == 1
    assert data["orders"][0]["customer_id"] == customer_id
    assert len(data["orders"][0]["items"]) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_history_filters_by_status(client, db_session, act_as):
    customer_id = await _place_signed_in(client, db_session)
    act_as(AuthUser(user_id="user-9", role="customer"))

    pending = await client.get(
        f"/orders/customer/{customer_id}", params={"status": "PENDING"}
    )
    delivered = await client.get(
        f"/orders/customer/{customer_id}", params={"status": "DELIVERED"}
    )

    assert pending.json()["total"] == 1
    assert delivered.json()["total"] == 0
    assert delivered.json()["orders"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_customers_orders_are_403(client, db_session, act_as):
    customer_id = await _place_signed_in(client, db_session)
    act_as(AuthUser(user_id="user-10", role="customer"))

    response = await client.get(f"/orders/customer/{customer_id}")

    assert response.status_code == 403
    assert response.json()["code"] == "ORDER_ACCESS_DENIED"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_staff_can_read_any_customer_history(client, db_session):
    customer_id = await _place_signed_in(client, db_session)

    response = await client.get(f"/orders/customer/{customer_id}")

    assert response.status_code == 200
    assert response.json()["total"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_customer_history_is_404(client):
    response = await client.get(f"/orders/customer/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["code"] == "CUSTOMER_NOT_FOUND"


# ---------------------------------------------------------------------------
# Delivery zones
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delivery_zones(client):
    response = await client.get("/delivery-zones")

    assert response.status_code == 200
    data = response.json()
    assert data["default_fee"] == 10.0
    assert data["free_delivery_threshold"] == 100.0
    assert data["currency"] == "USD"
    assert data["zones"][0]["fee"] == 5.0
    assert any(z["name"] == "Gombe" for z in data["zones"])


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
