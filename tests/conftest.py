"""
Test configuration and fixtures.

Environment variables are set before any ``bidding_api`` import because the
settings object and the engine are built at import time.
"""
import os

os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Dict, List  # noqa: E402

from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import bidding_api.models  # noqa: E402,F401
from bidding_api.core.config import settings  # noqa: E402
from bidding_api.core.database import get_async_session  # noqa: E402
from bidding_api.dao.bid_dao import bid_dao  # noqa: E402
from bidding_api.dao.product_dao import product_dao  # noqa: E402
from bidding_api.dao.user_dao import user_dao  # noqa: E402
from bidding_api.main import app  # noqa: E402
from bidding_api.services.image_service import image_service  # noqa: E402


PRODUCTS_URL = f"{settings.api_prefix}/products"

SELLER_ID = "seller-1"
BUYER_ID = "buyer-1"
ADMIN_ID = "admin-1"


class FakeImageStore:
    """Stands in for the Cloudinary SAO and records every call."""

    def __init__(self):
        self.uploads: List[Dict] = []
        self.destroyed: List[str] = []
        self.fail_upload = False
        self.fail_destroy = False

    async def upload(self, content: bytes, filename: str, folder: str, resource_type: str = "image"):
        if self.fail_upload:
            raise RuntimeError("upload refused")
        public_id = f"{folder}/img-{len(self.uploads) + 1}"
        self.uploads.append({"filename": filename, "folder": folder, "size": len(content)})
        return {
            "secure_url": f"https://res.cloudinary.test/{public_id}.png",
            "public_id": public_id,
        }

    async def destroy(self, public_id: str, resource_type: str = "image"):
        if self.fail_destroy:
            raise RuntimeError("destroy refused")
        self.destroyed.append(public_id)
        return {"result": "ok"}


def make_token(user_id: str, role: str = "BUYER") -> str:
    return jwt.encode(
        {"userId": user_id, "role": role},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def auth_headers(user_id: str, role: str = "BUYER") -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_session(async_engine):
    session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_image_store(monkeypatch):
    store = FakeImageStore()
    monkeypatch.setattr(image_service, "image_store", store)
    return store


@pytest_asyncio.fixture(scope="function")
async def users(async_session):
    created = {}
    for user_id, name, role in (
        (SELLER_ID, "Sally Seller", "SELLER"),
        (BUYER_ID, "Bob Buyer", "BUYER"),
        (ADMIN_ID, "Ada Admin", "ADMIN"),
    ):
        created[user_id] = await user_dao.create(
            async_session,
            obj_in={"id": user_id, "name": name, "email": f"{user_id}@example.com", "role": role},
        )
    return created


@pytest_asyncio.fixture(scope="function")
async def async_client(async_session, fake_image_store, users):
    async def override_get_async_session():
        yield async_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_product(async_session):
    """Insert a product row directly, bypassing the API."""
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        data = {
            "user_id": SELLER_ID,
            "title": f"Painting {counter['n']}",
            "slug": f"painting-{counter['n']}",
            "description": "Oil on canvas",
            "price": Decimal("100"),
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["n"]),
        }
        data.update(overrides)
        return await product_dao.create(async_session, obj_in=data)

    return _make


@pytest.fixture
def make_bid(async_session):
    async def _make(product_id: str, price, created_at: datetime, user_id: str = BUYER_ID):
        return await bid_dao.create(
            async_session,
            obj_in={
                "product_id": product_id,
                "user_id": user_id,
                "price": Decimal(str(price)),
                "created_at": created_at,
            },
        )

    return _make
