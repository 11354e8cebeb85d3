from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest
from httpx import ASGITransport, AsyncClient

from mechconnect import create_app
from mechconnect.config import settings
from mechconnect.database import get_store
from mechconnect.models import (
    CustomerCreate,
    Customer,
    GeoPoint,
    Mechanic,
    MechanicCreate,
    ServiceRequest,
    ServiceRequestCreate,
)
from mechconnect.queries import create_customer, create_mechanic, create_request, update_mechanic
from mechconnect.services.google_maps import get_maps_service
from mechconnect.services.notifier import Notifier, get_notifier
from mechconnect.store import MemoryStore
from mechconnect.utils.auth import create_access_token, get_password_hash

ISLAMABAD = (33.6844, 73.0479)
NEAR_ISLAMABAD = (33.70, 73.05)
LAHORE = (31.5204, 74.3587)

ADMIN_KEY = "test-admin-key"

# pbkdf2 is deliberately slow; hash once for every factory user
PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


class Clock:
    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    """Notifier that keeps what it sent and can be told to fail for some users"""

    def __init__(self, store):
        super().__init__(store)
        self.sent = []
        self.failing_users = set()

    async def deliver(self, user_id, type, title, body, data):
        if user_id in self.failing_users:
            raise ConnectionError("push gateway unavailable")
        await super().deliver(user_id, type, title, body, data)
        self.sent.append({"user_id": user_id, "type": type, "title": title, "body": body, "data": data})

    def sent_to(self, user_id, type=None):
        return [n for n in self.sent if n["user_id"] == user_id and (type is None or n["type"] == type)]


class StubMaps:
    def __init__(self, route=None, error=None):
        self.route = route
        self.error = error
        self.calls = []

    def directions(self, origin, destination):
        self.calls.append((origin, destination))
        if self.error:
            raise self.error
        return self.route


def point(coords) -> GeoPoint:
    return GeoPoint(latitude=coords[0], longitude=coords[1])


def auth_header(user) -> dict:
    user_type = "mechanic" if isinstance(user, Mechanic) else "customer"
    token = create_access_token({"sub": user.id, "type": user_type})
    return {"Authorization": f"Bearer {token}"}


async def make_customer(store, name: str = "Ayesha Khan", email: Optional[str] = None) -> Customer:
    payload = CustomerCreate(
        name=name,
        email=email or f"{name.split()[0].lower()}@example.com",
        phone="+923001234567",
        password=PASSWORD
    )
    return await create_customer(store, payload, PASSWORD_HASH)


async def make_mechanic(
    store,
    name: str = "Bilal Ahmed",
    email: Optional[str] = None,
    categories: Sequence[str] = ("car_mechanic",),
    location=NEAR_ISLAMABAD,
    approved: bool = True,
    balance: int = 5
) -> Mechanic:
    payload = MechanicCreate(
        name=name,
        email=email or f"{name.split()[0].lower()}@example.com",
        phone="+923111234567",
        password=PASSWORD,
        categories=list(categories),
        location=point(location) if location else None
    )
    mechanic = await create_mechanic(store, payload, PASSWORD_HASH)
    changes = {"diamond_balance": balance}
    if approved:
        changes.update(kyc_status="approved", is_verified=True)
    return await update_mechanic(store, mechanic.id, **changes)


async def make_request(
    store,
    customer: Customer,
    category: str = "car_mechanic",
    location=ISLAMABAD,
    is_scheduled: bool = False,
    **extra
) -> ServiceRequest:
    payload = ServiceRequestCreate(
        category=category,
        description="Car will not start, battery seems dead",
        location={"latitude": location[0], "longitude": location[1], "address": "F-7 Markaz, Islamabad"},
        is_scheduled=is_scheduled,
        scheduled_date="2026-01-20" if is_scheduled else None,
        scheduled_time="10:00 AM" if is_scheduled else None,
        **extra
    )
    return await create_request(store, customer, payload)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def notifier(store):
    return RecordingNotifier(store)


@pytest.fixture
def maps():
    return StubMaps()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture
def app(store, notifier, maps, upload_dir, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    app = create_app()

    async def override_store():
        yield store

    app.dependency_overrides[get_store] = override_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_maps_service] = lambda: maps
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
