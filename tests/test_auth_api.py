import pytest

from shibr.core.security import create_refresh_token, decode_token
from tests.conftest import PASSWORD, auth_headers

API = "/api/v1/auth"


def _registration(**overrides):
    data = {
        "email": "Owner@Shibr.sa",
        "password": "s3cure-pass",
        "full_name": "Maha Alzahrani",
        "account_type": "store_owner",
        "store_name": "Maha Market",
    }
    data.update(overrides)
    return data


async def test_register_and_login(client):
    response = await client.post(f"{API}/register", json=_registration())
    assert response.status_code == 201
    user = response.json()
    assert user["email"] == "owner@shibr.sa"
    assert user["account_type"] == "store_owner"
    assert user["preferred_language"] == "ar"
    assert "hashed_password" not in user

    response = await client.post(f"{API}/register", json=_registration())
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"

    response = await client.post(f"{API}/login", json={"email": "owner@shibr.sa", "password": "s3cure-pass"})
    assert response.status_code == 200
    tokens = response.json()
    assert tokens["token_type"] == "bearer"
    assert decode_token(tokens["access_token"])["sub"] == str(user["id"])

    response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert response.json()["last_login"] is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"account_type": "admin"},
        {"account_type": "brand_owner"},
        {"store_name": None},
        {"password": "short"},
        {"email": "not-an-email"},
    ],
)
async def test_register_rejects_invalid_accounts(client, overrides):
    response = await client.post(f"{API}/register", json=_registration(**overrides))
    assert response.status_code == 422


async def test_login_with_wrong_password(client, store_owner):
    response = await client.post(f"{API}/login", json={"email": "store@shibr.sa", "password": "wrong-pass"})
    assert response.status_code == 401

    response = await client.post(f"{API}/login", json={"email": "store@shibr.sa", "password": PASSWORD})
    assert response.status_code == 200


async def test_refresh(client, brand_owner):
    refresh_token = create_refresh_token({"sub": str(brand_owner.id)})
    response = await client.post(f"{API}/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    assert decode_token(response.json()["access_token"])["account_type"] == "brand_owner"

    access_token = auth_headers(brand_owner)["Authorization"].split()[1]
    response = await client.post(f"{API}/refresh", json={"refresh_token": access_token})
    assert response.status_code == 401


async def test_profile_update(client, brand_owner):
    headers = auth_headers(brand_owner)
    response = await client.patch(
        f"{API}/me",
        json={"brand_name": "Nakheel Premium", "preferred_language": "en"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["brand_name"] == "Nakheel Premium"
    assert response.json()["preferred_language"] == "en"

    response = await client.get(f"{API}/me", headers=headers)
    assert response.json()["brand_name"] == "Nakheel Premium"


async def test_me_requires_a_token(client):
    response = await client.get(f"{API}/me")
    assert response.status_code == 401
    response = await client.get(f"{API}/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
