from tests.conftest import auth_headers

API = "/api/v1/reviews"


async def _finish(client, rental, store_owner):
    response = await client.post(f"/api/v1/rentals/{rental.id}/complete", headers=auth_headers(store_owner))
    assert response.status_code == 200


async def test_only_completed_rentals_can_be_reviewed(client, active_rental, brand_owner):
    response = await client.post(
        f"{API}/", json={"rental_request_id": active_rental.id, "rating": 5}, headers=auth_headers(brand_owner),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Can only review completed rentals"


async def test_parties_review_each_other_once(client, active_rental, store_owner, brand_owner, other_brand):
    await _finish(client, active_rental, store_owner)

    response = await client.post(
        f"{API}/",
        json={"rental_request_id": active_rental.id, "rating": 4, "comment": "Great placement"},
        headers=auth_headers(brand_owner),
    )
    assert response.status_code == 201
    assert response.json()["reviewed_id"] == store_owner.id

    response = await client.post(
        f"{API}/", json={"rental_request_id": active_rental.id, "rating": 2}, headers=auth_headers(brand_owner),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "You have already reviewed this rental"

    response = await client.post(
        f"{API}/", json={"rental_request_id": active_rental.id, "rating": 5}, headers=auth_headers(other_brand),
    )
    assert response.status_code == 403

    response = await client.post(
        f"{API}/", json={"rental_request_id": active_rental.id, "rating": 5}, headers=auth_headers(store_owner),
    )
    assert response.json()["reviewed_id"] == brand_owner.id

    data = (await client.get(f"{API}/users/{store_owner.id}")).json()
    assert data["average_rating"] == 4.0
    assert [r["comment"] for r in data["reviews"]] == ["Great placement"]


async def test_rating_range(client, active_rental, brand_owner):
    response = await client.post(
        f"{API}/", json={"rental_request_id": active_rental.id, "rating": 6}, headers=auth_headers(brand_owner),
    )
    assert response.status_code == 422


async def test_user_without_reviews(client, brand_owner):
    data = (await client.get(f"{API}/users/{brand_owner.id}")).json()
    assert data == {"user_id": brand_owner.id, "average_rating": 0.0, "reviews": []}
