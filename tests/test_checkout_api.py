from shibr.core.config import settings
from shibr.services.otp import normalize_phone
from tests.conftest import SHOPPER_PHONE, place_order, verify_phone

API = "/api/v1"


async def _new_cart(client, branch_id):
    response = await client.post(f"{API}/carts", json={"branch_id": branch_id})
    assert response.status_code == 201
    return response.json()["cart_id"]


async def test_storefront_lists_shelf_stock(client, active_rental, branch, product):
    response = await client.get(f"{API}/store/{branch.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["store_name"] == "Hala Mart Olaya"
    assert data["products"] == [{
        "product_id": product.id,
        "name": "Sukkari Dates 1kg",
        "description": None,
        "category": None,
        "price": 100.0,
        "quantity": 5,
    }]


async def test_unknown_store(client):
    response = await client.get(f"{API}/store/999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Store not found or inactive"


async def test_cart_quantity_is_clamped_to_stock(client, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)

    response = await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 3})
    assert response.json()["items"][0]["quantity"] == 3

    response = await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 5})
    item = response.json()["items"][0]
    assert item["quantity"] == 5
    assert item["max_quantity"] == 5

    response = await client.patch(f"{API}/carts/{cart_id}/items/{product.id}", json={"quantity": 40})
    assert response.json()["items"][0]["quantity"] == 5

    response = await client.patch(f"{API}/carts/{cart_id}/items/{product.id}", json={"quantity": 0})
    data = response.json()
    assert data["items"] == []
    assert data["total"] == 0.0


async def test_cart_totals(client, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)
    response = await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 2})
    data = response.json()
    assert data["subtotal"] == 200.0
    assert data["tax"] == 30.0
    assert data["total"] == 230.0
    assert data["total_items"] == 2


async def test_product_not_on_branch_shelves(client, branch, product):
    cart_id = await _new_cart(client, branch.id)
    response = await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id})
    assert response.status_code == 404


async def test_remove_and_clear(client, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)
    await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 2})

    response = await client.delete(f"{API}/carts/{cart_id}/items/{product.id}")
    assert response.json()["items"] == []

    await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id})
    response = await client.delete(f"{API}/carts/{cart_id}/items")
    assert response.json()["items"] == []


async def test_missing_cart(client):
    response = await client.get(f"{API}/carts/nope")
    assert response.status_code == 404


async def test_checkout_requires_verified_phone(client, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)
    await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 1})

    response = await client.post(
        f"{API}/carts/{cart_id}/checkout",
        json={"customer_name": "Reem", "customer_phone": SHOPPER_PHONE},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Please verify your phone number before checkout"


async def test_checkout_validates_name_and_phone(client, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)
    await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id})

    response = await client.post(
        f"{API}/carts/{cart_id}/checkout",
        json={"customer_name": "Reem", "customer_phone": "12345"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid phone number format"

    response = await client.post(
        f"{API}/carts/{cart_id}/checkout",
        json={"customer_name": "  ", "customer_phone": SHOPPER_PHONE},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Name is required"


async def test_checkout_with_empty_cart(client, otp_provider, active_rental, branch):
    cart_id = await _new_cart(client, branch.id)
    await verify_phone(client, otp_provider, cart_id)
    response = await client.post(
        f"{API}/carts/{cart_id}/checkout",
        json={"customer_name": "Reem", "customer_phone": SHOPPER_PHONE},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Your cart is empty"


async def test_checkout_hands_payload_to_payment_step(client, otp_provider, fake_redis, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)
    await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 5})
    await verify_phone(client, otp_provider, cart_id)

    response = await client.post(
        f"{API}/carts/{cart_id}/checkout",
        json={"customer_name": "Reem", "customer_phone": SHOPPER_PHONE},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["redirect_url"] == f"/store/{branch.id}/payment"
    order = data["order"]
    assert order["store_name"] == "Hala Mart Olaya"
    assert order["items"] == [{"product_id": product.id, "name": "Sukkari Dates 1kg", "price": 100.0, "quantity": 5}]
    assert (order["subtotal"], order["tax"], order["total"]) == (500.0, 75.0, 575.0)

    assert fake_redis.data[f"pending_order:{cart_id}"]["total"] == 575.0


async def test_place_order_takes_stock_off_the_shelf(client, otp_provider, active_rental, branch, product, store_owner):
    order = await place_order(client, otp_provider, branch.id, product.id, 2)
    assert order["order_number"] == "ORD-000001"
    assert order["status"] == "pending"
    assert (order["subtotal"], order["tax"], order["total"]) == (200.0, 30.0, 230.0)
    assert order["items"][0]["quantity"] == 2

    storefront = (await client.get(f"{API}/store/{branch.id}")).json()
    assert storefront["products"][0]["quantity"] == 3

    second = await place_order(client, otp_provider, branch.id, product.id, 1)
    assert second["order_number"] == "ORD-000002"


async def test_place_order_rechecks_stock(client, otp_provider, fake_redis, active_rental, branch, product):
    cart_id = await _new_cart(client, branch.id)
    await client.post(f"{API}/carts/{cart_id}/items", json={"product_id": product.id, "quantity": 5})
    await verify_phone(client, otp_provider, cart_id)
    await client.post(
        f"{API}/carts/{cart_id}/checkout",
        json={"customer_name": "Reem", "customer_phone": SHOPPER_PHONE},
    )

    pending = fake_redis.data[f"pending_order:{cart_id}"]
    pending["items"][0]["quantity"] = 6

    response = await client.post(f"{API}/carts/{cart_id}/orders", json={"payment_method": "cash"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient stock for Sukkari Dates 1kg"


async def test_place_order_without_checkout(client, active_rental, branch):
    cart_id = await _new_cart(client, branch.id)
    response = await client.post(f"{API}/carts/{cart_id}/orders", json={"payment_method": "cash"})
    assert response.status_code == 404


async def test_otp_endpoints_report_inline_errors(client, otp_provider, branch):
    cart_id = await _new_cart(client, branch.id)
    response = await client.post(f"{API}/checkout/otp/send", json={"phone": "0412345678"})
    assert response.status_code == 200
    assert response.json() == {"success": False, "message": None, "error": "Invalid phone number format"}

    await client.post(f"{API}/checkout/otp/send", json={"phone": SHOPPER_PHONE})
    assert otp_provider.last_code(normalize_phone(SHOPPER_PHONE)) is not None

    response = await client.post(
        f"{API}/checkout/otp/verify",
        json={"cart_id": cart_id, "phone": SHOPPER_PHONE, "code": "12"},
    )
    assert response.json()["success"] is False

    response = await client.post(
        f"{API}/checkout/otp/verify",
        json={"cart_id": "missing", "phone": SHOPPER_PHONE, "code": "123456"},
    )
    assert response.status_code == 404


async def test_otp_requests_are_throttled_per_ip(client, branch, monkeypatch):
    cart_id = await _new_cart(client, branch.id)
    monkeypatch.setattr(settings, "OTP_RATE_LIMIT_PER_IP_HOUR", 2)
    body = {"cart_id": cart_id, "phone": SHOPPER_PHONE, "code": "123456"}
    for _ in range(2):
        response = await client.post(f"{API}/checkout/otp/verify", json=body)
        assert response.status_code == 200
    response = await client.post(f"{API}/checkout/otp/verify", json=body)
    assert response.status_code == 429


async def test_verification_only_counts_for_its_own_cart(
    client, otp_provider, fake_redis, active_rental, branch, product,
):
    verified_cart = await _new_cart(client, branch.id)
    other_cart = await _new_cart(client, branch.id)
    await client.post(f"{API}/carts/{other_cart}/items", json={"product_id": product.id, "quantity": 1})
    await verify_phone(client, otp_provider, verified_cart)
    assert fake_redis.data[f"verified_phone:{verified_cart}"] == normalize_phone(SHOPPER_PHONE)

    response = await client.post(
        f"{API}/carts/{other_cart}/checkout",
        json={"customer_name": "Reem", "customer_phone": SHOPPER_PHONE},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Please verify your phone number before checkout"
