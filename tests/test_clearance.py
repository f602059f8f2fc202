from sqlalchemy import select

from shibr.models import Payment, PaymentStatus, PaymentType, TransferStatus
from shibr.services.clearance import calculate_settlement, document_number
from tests.conftest import auth_headers

API = "/api/v1/clearances"


def _snapshot(unit_price=100.0, initial=10, remaining=5):
    return [{
        "product_id": 1,
        "product_name": "Sukkari Dates 1kg",
        "initial_quantity": initial,
        "sold_quantity": initial - remaining,
        "remaining_quantity": remaining,
        "unit_price": unit_price,
    }]


def test_settlement_split():
    settlement = calculate_settlement(_snapshot(), platform_rate=22, store_rate=10)
    assert settlement["total_sales"] == 500.0
    assert settlement["total_sold_units"] == 5
    assert settlement["total_returned_units"] == 5
    assert settlement["platform_commission_amount"] == 110.0
    assert settlement["store_commission_amount"] == 50.0
    assert settlement["store_payout_amount"] == 50.0
    assert settlement["brand_sales_revenue"] == 340.0
    assert settlement["return_inventory_value"] == 500.0
    assert settlement["brand_total_amount"] == 840.0


def test_settlement_with_nothing_sold():
    settlement = calculate_settlement(_snapshot(initial=4, remaining=4))
    assert settlement["total_sales"] == 0.0
    assert settlement["store_payout_amount"] == 0.0
    assert settlement["brand_total_amount"] == 400.0


def test_settlement_rounds_half_up():
    settlement = calculate_settlement(_snapshot(unit_price=10.05, initial=1, remaining=0), 22, 10)
    assert settlement["platform_commission_amount"] == 2.21
    assert settlement["store_commission_amount"] == 1.01


def test_document_number():
    assert document_number(1) == "CLR-00000001"
    assert document_number(123456) == "CLR-00123456"


async def _complete(client, rental, store_owner):
    response = await client.post(
        f"/api/v1/rentals/{rental.id}/complete", headers=auth_headers(store_owner),
    )
    assert response.status_code == 200
    return response.json()["clearance"]


async def test_clearance_runs_to_close(
    client, session_factory, active_rental, store_owner, brand_owner, admin_user,
):
    clearance = await _complete(client, active_rental, store_owner)
    snapshot = clearance["inventory_snapshot"][0]
    assert (snapshot["initial_quantity"], snapshot["sold_quantity"], snapshot["remaining_quantity"]) == (10, 5, 5)
    assert snapshot["total_sales_value"] == 500.0
    assert snapshot["total_sales_with_tax"] == 575.0

    url = f"{API}/{clearance['id']}"
    store, brand, admin = auth_headers(store_owner), auth_headers(brand_owner), auth_headers(admin_user)

    assert (await client.post(f"{url}/confirm-inventory", headers=brand)).status_code == 403
    response = await client.post(f"{url}/confirm-inventory", headers=store)
    assert response.json()["status"] == "pending_return_shipment"

    response = await client.post(f"{url}/approve-settlement", headers=admin)
    assert response.status_code == 409

    response = await client.post(
        f"{url}/return-shipment",
        json={"carrier": "SMSA", "tracking_number": "SM123", "expected_delivery": "2026-11-20"},
        headers=store,
    )
    assert response.json()["status"] == "return_shipped"
    assert response.json()["return_tracking_number"] == "SM123"

    response = await client.post(f"{url}/confirm-receipt", json={"condition": "good"}, headers=brand)
    assert response.json()["status"] == "return_received"

    response = await client.post(f"{url}/submit-settlement", headers=store)
    assert response.json()["status"] == "pending_settlement"

    assert (await client.post(f"{url}/approve-settlement", headers=brand)).status_code == 403
    response = await client.post(f"{url}/approve-settlement", headers=admin)
    settlement = response.json()["settlement"]
    assert settlement["total_sales"] == 500.0
    assert settlement["store_payout_amount"] == 50.0
    assert settlement["brand_total_amount"] == 840.0

    response = await client.post(f"{url}/settlement-payment", json={}, headers=admin)
    assert response.json()["status"] == "payment_completed"

    async with session_factory() as session:
        payment = await session.scalar(
            select(Payment).where(Payment.type == PaymentType.STORE_SETTLEMENT)
        )
        assert payment.amount == 50.0
        assert payment.to_user_id == store_owner.id
        assert payment.status == PaymentStatus.PENDING
        assert payment.transfer_status == TransferStatus.PENDING

    response = await client.post(f"{url}/close", headers=admin)
    data = response.json()
    assert data["status"] == "closed"
    assert data["document"]["document_number"] == document_number(clearance["id"])
    assert data["document"]["return_shipment"]["carrier"] == "SMSA"
    assert data["document"]["settlement"]["brand_total_amount"] == 840.0

    response = await client.post(f"{url}/close", headers=admin)
    assert response.status_code == 409


async def test_clearance_visibility(client, active_rental, store_owner, brand_owner, other_brand, admin_user):
    clearance = await _complete(client, active_rental, store_owner)

    response = await client.get(f"{API}/", headers=auth_headers(brand_owner))
    assert [c["id"] for c in response.json()] == [clearance["id"]]

    response = await client.get(f"{API}/", headers=auth_headers(other_brand))
    assert response.json() == []

    response = await client.get(
        f"{API}/", params={"status": "closed"}, headers=auth_headers(admin_user),
    )
    assert response.json() == []

    response = await client.get(f"{API}/{clearance['id']}", headers=auth_headers(other_brand))
    assert response.status_code == 403

    response = await client.get(f"{API}/{clearance['id']}", headers=auth_headers(brand_owner))
    assert response.json()["rental_request_id"] == active_rental.id
