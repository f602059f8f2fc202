"""Shared fixtures: a SQLite database per test, in-memory Redis and a stub OTP provider."""
import json
import os
from datetime import date, datetime, timedelta

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["OTP_PROVIDER"] = "stub"
os.environ["LOG_FORMAT"] = "text"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import shibr.models  # noqa: F401
from shibr.core.database import Base, get_db
from shibr.core.redis import RedisClient, get_redis
from shibr.core.security import create_access_token, get_password_hash
from shibr.main import app
from shibr.models import (
    AccountType, Branch, Conversation, Product, RentalProduct, RentalRequest,
    RentalStatus, Shelf, ShelfStatus, User,
)
from shibr.services.messaging import StubOTPProvider, get_otp_provider
from shibr.services.otp import normalize_phone
from shibr.services.sessions import SessionStore, get_session_store

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)
SHOPPER_PHONE = "0551234567"


class InMemoryRedis(RedisClient):
    """RedisClient with a dict behind it; values go through JSON like the real one."""

    def __init__(self):
        super().__init__()
        self.data = {}

    async def get_json(self, key):
        return self.data.get(key)

    async def set_json(self, key, value, expire=None):
        self.data[key] = json.loads(json.dumps(value, default=str))
        return True

    async def delete(self, key):
        self.data.pop(key, None)
        return True

    async def incr(self, key, amount=1):
        self.data[key] = self.data.get(key, 0) + amount
        return self.data[key]

    async def expire(self, key, seconds):
        return key in self.data


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shibr.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def otp_provider():
    return StubOTPProvider()


@pytest.fixture
async def client(session_factory, fake_redis, otp_provider):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_session_store():
        return SessionStore(fake_redis)

    async def override_redis():
        return fake_redis

    async def override_otp_provider():
        return otp_provider

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = override_session_store
    app.dependency_overrides[get_redis] = override_redis
    app.dependency_overrides[get_otp_provider] = override_otp_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def save(session_factory, *objects):
    async with session_factory() as session:
        session.add_all(objects)
        await session.commit()
    return objects[0] if len(objects) == 1 else objects


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


async def create_user(session_factory, account_type: AccountType, email: str, **fields) -> User:
    user = User(
        email=email,
        hashed_password=PASSWORD_HASH,
        full_name=fields.pop("full_name", "Test User"),
        account_type=account_type,
        is_active=True,
        is_verified=True,
        **fields,
    )
    return await save(session_factory, user)


@pytest.fixture
async def store_owner(session_factory):
    return await create_user(
        session_factory, AccountType.STORE_OWNER, "store@shibr.sa",
        full_name="Fahad Alqahtani", store_name="Hala Mart",
    )


@pytest.fixture
async def brand_owner(session_factory):
    return await create_user(
        session_factory, AccountType.BRAND_OWNER, "brand@shibr.sa",
        full_name="Noura Alharbi", brand_name="Nakheel Dates",
    )


@pytest.fixture
async def other_brand(session_factory):
    return await create_user(
        session_factory, AccountType.BRAND_OWNER, "brand2@shibr.sa",
        full_name="Saad Alotaibi", brand_name="Qahwa House",
    )


@pytest.fixture
async def admin_user(session_factory):
    return await create_user(
        session_factory, AccountType.ADMIN, "admin@shibr.sa", full_name="Platform Admin",
    )


@pytest.fixture
async def branch(session_factory, store_owner):
    return await save(session_factory, Branch(
        owner_id=store_owner.id,
        name="Hala Mart Olaya",
        city="Riyadh",
        address="Olaya St",
        is_active=True,
    ))


@pytest.fixture
async def shelf(session_factory, store_owner, branch):
    return await save(session_factory, Shelf(
        owner_id=store_owner.id,
        branch_id=branch.id,
        shelf_name="Entrance A1",
        city="Riyadh",
        monthly_price=500.0,
        discount_percentage=0,
        final_price=540.0,
        available_from=date.today(),
        is_available=True,
        status=ShelfStatus.APPROVED,
    ))


@pytest.fixture
async def product(session_factory, brand_owner):
    return await save(session_factory, Product(
        owner_id=brand_owner.id,
        name="Sukkari Dates 1kg",
        code="SKR-1",
        price=100.0,
        quantity=50,
        currency="SAR",
        total_sales=0,
        total_revenue=0.0,
        is_active=True,
    ))


@pytest.fixture
async def active_rental(session_factory, store_owner, brand_owner, shelf, product):
    """An active rental with 10 units placed on the shelf, 5 of them still there."""
    conversation = await save(session_factory, Conversation(
        brand_owner_id=brand_owner.id,
        store_owner_id=store_owner.id,
        shelf_id=shelf.id,
    ))
    today = date.today()
    rental = RentalRequest(
        shelf_id=shelf.id,
        brand_owner_id=brand_owner.id,
        store_owner_id=store_owner.id,
        conversation_id=conversation.id,
        start_date=today - timedelta(days=30),
        end_date=today + timedelta(days=30),
        monthly_price=500.0,
        total_price=1000.0,
        platform_commission_rate=22.0,
        store_commission_rate=10.0,
        status=RentalStatus.ACTIVE,
        activated_at=datetime.utcnow(),
    )
    rental.products.append(RentalProduct(product_id=product.id, original_quantity=10, quantity=5))
    return await save(session_factory, rental)


async def verify_phone(client, otp_provider, cart_id: str, phone: str = SHOPPER_PHONE) -> None:
    response = await client.post("/api/v1/checkout/otp/send", json={"phone": phone, "name": "Reem"})
    assert response.json()["success"] is True
    code = otp_provider.last_code(normalize_phone(phone))
    response = await client.post(
        "/api/v1/checkout/otp/verify",
        json={"cart_id": cart_id, "phone": phone, "code": code},
    )
    assert response.json()["success"] is True


async def place_order(client, otp_provider, branch_id: int, product_id: int, quantity: int) -> dict:
    """Walk a shopper from an empty cart to a placed order."""
    cart_id = (await client.post("/api/v1/carts", json={"branch_id": branch_id})).json()["cart_id"]
    response = await client.post(
        f"/api/v1/carts/{cart_id}/items",
        json={"product_id": product_id, "quantity": quantity},
    )
    assert response.status_code == 200
    await verify_phone(client, otp_provider, cart_id)
    response = await client.post(
        f"/api/v1/carts/{cart_id}/checkout",
        json={"customer_name": "Reem", "customer_phone": SHOPPER_PHONE},
    )
    assert response.status_code == 200
    response = await client.post(f"/api/v1/carts/{cart_id}/orders", json={"payment_method": "card"})
    assert response.status_code == 201
    return response.json()
