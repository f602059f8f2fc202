from shibr.models import AccountType
from shibr.services.admin import STATS_CACHE_KEY
from tests.conftest import auth_headers, create_user

API = "/api/v1/admin"


async def test_admin_routes_are_admin_only(client, store_owner):
    for path in ("/stats", "/stores", "/settings"):
        response = await client.get(f"{API}{path}", headers=auth_headers(store_owner))
        assert response.status_code == 403
    response = await client.get(f"{API}/stats")
    assert response.status_code == 401


async def test_stats_are_cached(client, fake_redis, session_factory, active_rental, admin_user):
    headers = auth_headers(admin_user)

    stats = (await client.get(f"{API}/stats", headers=headers)).json()
    assert stats["users"] == {"store_owner": 1, "brand_owner": 1, "admin": 1}
    assert stats["total_users"] == 3
    assert stats["shelves"]["approved"] == 1
    assert stats["rentals"]["active"] == 1
    assert stats["rentals"]["pending"] == 0
    assert stats["orders"] == 0
    assert stats["revenue"] == 0.0
    assert stats["currency"] == "SAR"
    assert STATS_CACHE_KEY in fake_redis.data

    await create_user(session_factory, AccountType.BRAND_OWNER, "late@shibr.sa", brand_name="Late Brand")
    stats = (await client.get(f"{API}/stats", headers=headers)).json()
    assert stats["total_users"] == 3

    del fake_redis.data[STATS_CACHE_KEY]
    stats = (await client.get(f"{API}/stats", headers=headers)).json()
    assert stats["total_users"] == 4


async def test_user_listing_pages_and_search(client, session_factory, store_owner, admin_user):
    for i in range(3):
        await create_user(
            session_factory, AccountType.STORE_OWNER, f"corner{i}@shibr.sa", store_name=f"Corner Shop {i}",
        )
    headers = auth_headers(admin_user)

    page = (await client.get(f"{API}/stores", params={"page_size": 3}, headers=headers)).json()
    assert page["total"] == 4
    assert page["pages"] == 2
    assert len(page["items"]) == 3

    page = (await client.get(f"{API}/stores", params={"page": 2, "page_size": 3}, headers=headers)).json()
    assert len(page["items"]) == 1

    page = (await client.get(f"{API}/stores", params={"search": "corner"}, headers=headers)).json()
    assert page["total"] == 3

    page = (await client.get(f"{API}/brands", headers=headers)).json()
    assert page["total"] == 0
    assert page["pages"] == 0


async def test_rental_and_clearance_listings(client, active_rental, admin_user):
    headers = auth_headers(admin_user)

    page = (await client.get(f"{API}/rentals", headers=headers)).json()
    assert page["total"] == 1
    assert page["items"][0]["products"][0]["original_quantity"] == 10

    page = (await client.get(f"{API}/rentals", params={"status": "pending"}, headers=headers)).json()
    assert page["total"] == 0

    response = await client.get(f"{API}/clearances", headers=headers)
    assert response.json() == []


async def test_platform_settings_drive_shelf_pricing(client, admin_user, store_owner, branch):
    admin, store = auth_headers(admin_user), auth_headers(store_owner)

    response = await client.get(f"{API}/settings", headers=admin)
    assert response.json() == {
        "platform_fee_percentage": 8.0,
        "minimum_shelf_price": 100.0,
        "maximum_discount_percentage": 22.0,
    }

    response = await client.put(f"{API}/settings", json={"platform_fee_percentage": 10}, headers=admin)
    assert response.json()["platform_fee_percentage"] == 10.0
    assert response.json()["minimum_shelf_price"] == 100.0

    response = await client.put(f"{API}/settings", json={"maximum_discount_percentage": 150}, headers=admin)
    assert response.status_code == 422

    shelf = {
        "branch_id": branch.id,
        "shelf_name": "Checkout B2",
        "monthly_price": 400,
        "available_from": "2026-11-01",
    }
    response = await client.post("/api/v1/shelves/", json=shelf, headers=store)
    assert response.status_code == 201
    assert response.json()["final_price"] == 440.0
    assert response.json()["city"] == "Riyadh"

    response = await client.post("/api/v1/shelves/", json={**shelf, "monthly_price": 50}, headers=store)
    assert response.status_code == 400
    assert response.json()["detail"] == "Monthly price must be at least 100.00 SAR"

    response = await client.post("/api/v1/shelves/", json={**shelf, "discount_percentage": 30}, headers=store)
    assert response.status_code == 400
    assert response.json()["detail"] == "Discount cannot exceed 22%"


async def test_purge_notifications(client, admin_user):
    response = await client.post(f"{API}/notifications/purge", params={"days": 7}, headers=auth_headers(admin_user))
    assert response.json() == {"deleted": 0}
