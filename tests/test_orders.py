from datetime import datetime, timedelta

from shibr.models import AccountType, CustomerOrder
from tests.conftest import auth_headers, create_user, place_order

API = "/api/v1"


async def _set_status(client, order_id, status, user):
    return await client.patch(
        f"{API}/orders/{order_id}/status",
        json={"status": status},
        headers=auth_headers(user),
    )


async def test_order_moves_one_step_at_a_time(client, otp_provider, active_rental, branch, product, store_owner):
    order = await place_order(client, otp_provider, branch.id, product.id, 1)

    response = await _set_status(client, order["id"], "processing", store_owner)
    assert response.status_code == 409

    for status in ("confirmed", "processing", "ready", "delivered"):
        response = await _set_status(client, order["id"], status, store_owner)
        assert response.status_code == 200
        assert response.json()["status"] == status

    data = response.json()
    assert data["payment_status"] == "paid"
    assert data["confirmed_at"] is not None
    assert data["delivered_at"] is not None

    response = await _set_status(client, order["id"], "cancelled", store_owner)
    assert response.status_code == 409

    response = await _set_status(client, order["id"], "refunded", store_owner)
    assert response.json()["payment_status"] == "refunded"


async def test_cancel_puts_units_back_on_the_shelf(client, otp_provider, active_rental, branch, product, store_owner):
    order = await place_order(client, otp_provider, branch.id, product.id, 2)
    storefront = (await client.get(f"{API}/store/{branch.id}")).json()
    assert storefront["products"][0]["quantity"] == 3

    response = await _set_status(client, order["id"], "cancelled", store_owner)
    assert response.status_code == 200
    assert response.json()["cancelled_at"] is not None

    storefront = (await client.get(f"{API}/store/{branch.id}")).json()
    assert storefront["products"][0]["quantity"] == 5


async def test_branch_order_listing(client, otp_provider, session_factory, active_rental, branch, product, store_owner, admin_user):
    order = await place_order(client, otp_provider, branch.id, product.id, 1)

    response = await client.get(f"{API}/orders/branch/{branch.id}", headers=auth_headers(store_owner))
    assert response.status_code == 200
    assert [o["order_number"] for o in response.json()] == [order["order_number"]]

    response = await client.get(
        f"{API}/orders/branch/{branch.id}",
        params={"status": "delivered"},
        headers=auth_headers(admin_user),
    )
    assert response.json() == []

    response = await client.get(f"{API}/orders/{order['id']}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["items"][0]["product_name"] == "Sukkari Dates 1kg"


async def test_orders_are_private_to_the_branch_owner(client, otp_provider, session_factory, active_rental, branch, product, brand_owner):
    order = await place_order(client, otp_provider, branch.id, product.id, 1)
    other_store = await create_user(
        session_factory, AccountType.STORE_OWNER, "store2@shibr.sa", store_name="Corner Shop",
    )

    response = await client.get(f"{API}/orders/{order['id']}", headers=auth_headers(other_store))
    assert response.status_code == 403
    assert response.json()["detail"] == "Unauthorized to access this store's orders"

    response = await _set_status(client, order["id"], "confirmed", other_store)
    assert response.status_code == 403

    response = await client.get(f"{API}/orders/branch/{branch.id}", headers=auth_headers(brand_owner))
    assert response.status_code == 403

    response = await client.get(f"{API}/orders/branch/{branch.id}")
    assert response.status_code == 401


async def test_unknown_order(client, store_owner):
    response = await client.get(f"{API}/orders/404", headers=auth_headers(store_owner))
    assert response.status_code == 404


async def _two_orders_one_delivered(client, otp_provider, branch, product, store_owner):
    first = await place_order(client, otp_provider, branch.id, product.id, 1)
    second = await place_order(client, otp_provider, branch.id, product.id, 2)
    for status in ("confirmed", "processing", "ready", "delivered"):
        await _set_status(client, first["id"], status, store_owner)
    return first, second


async def test_order_statistics_per_account(
    client, otp_provider, session_factory, active_rental, branch, product, store_owner, brand_owner,
    other_brand, admin_user,
):
    await _two_orders_one_delivered(client, otp_provider, branch, product, store_owner)

    response = await client.get(f"{API}/orders/stats", headers=auth_headers(store_owner))
    assert response.status_code == 200
    assert response.json() == {
        "total_orders": 2,
        "pending_orders": 1,
        "completed_orders": 1,
        "total_revenue": 115.0,
        "average_order_value": 57.5,
    }

    response = await client.get(
        f"{API}/orders/stats", params={"branch_id": branch.id}, headers=auth_headers(admin_user),
    )
    assert response.json()["total_orders"] == 2

    response = await client.get(f"{API}/orders/stats", headers=auth_headers(brand_owner))
    assert response.json()["total_revenue"] == 100.0
    assert response.json()["average_order_value"] == 50.0

    response = await client.get(f"{API}/orders/stats", headers=auth_headers(other_brand))
    assert response.json()["total_orders"] == 0
    assert response.json()["average_order_value"] == 0.0

    other_store = await create_user(
        session_factory, AccountType.STORE_OWNER, "store2@shibr.sa", store_name="Corner Shop",
    )
    response = await client.get(
        f"{API}/orders/stats", params={"branch_id": branch.id}, headers=auth_headers(other_store),
    )
    assert response.status_code == 403


async def test_order_statistics_by_period(
    client, otp_provider, session_factory, active_rental, branch, product, store_owner,
):
    first, second = await _two_orders_one_delivered(client, otp_provider, branch, product, store_owner)
    async with session_factory() as session:
        older = await session.get(CustomerOrder, second["id"])
        older.created_at = datetime.utcnow() - timedelta(days=10)
        await session.commit()

    response = await client.get(f"{API}/orders/stats", params={"period": "week"}, headers=auth_headers(store_owner))
    assert response.json() == {
        "total_orders": 1,
        "pending_orders": 0,
        "completed_orders": 1,
        "total_revenue": 115.0,
        "average_order_value": 115.0,
    }

    response = await client.get(f"{API}/orders/store", params={"period": "month"}, headers=auth_headers(store_owner))
    assert len(response.json()) == 2
    response = await client.get(f"{API}/orders/store", params={"period": "today"}, headers=auth_headers(store_owner))
    assert [order["id"] for order in response.json()] == [first["id"]]


async def test_brand_sees_only_its_own_order_lines(
    client, otp_provider, session_factory, active_rental, branch, product, store_owner, brand_owner, other_brand,
):
    first, second = await _two_orders_one_delivered(client, otp_provider, branch, product, store_owner)

    response = await client.get(f"{API}/orders/brand", headers=auth_headers(brand_owner))
    assert response.status_code == 200
    orders = {order["order_number"]: order for order in response.json()}
    assert set(orders) == {first["order_number"], second["order_number"]}
    assert orders[first["order_number"]]["brand_total"] == 100.0
    assert orders[first["order_number"]]["payment_status"] == "paid"
    assert orders[second["order_number"]]["items"][0]["quantity"] == 2
    assert "customer_phone" not in orders[first["order_number"]]

    response = await client.get(f"{API}/orders/brand", headers=auth_headers(other_brand))
    assert response.json() == []

    response = await client.get(f"{API}/orders/brand", headers=auth_headers(store_owner))
    assert response.status_code == 403
