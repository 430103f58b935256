"""
Shared Test Fixtures
====================

In-memory stand-ins for the identity directory and subscription store,
a controllable clock for the rate limiter, and an httpx client bound to
the ASGI app.
"""

from datetime import datetime, timezone
from typing import Optional
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wellness_api.config import settings
from wellness_api.core.rate_limit import InMemoryRateLimiter
from wellness_api.dependencies import get_identity_directory, get_subscription_store
from wellness_api.main import app
from wellness_api.models import Subscription, SubscriptionStatus, User
from wellness_api.services.subscription_store import SubscriptionStoreError

TEST_HOTTOK = "test-hottok-0123456789"
USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
USER_EMAIL = "buyer@example.com"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdentityDirectory:
    def __init__(self, users: Optional[list[User]] = None):
        self.users = {u.email: u for u in users or []}
        self.lookups: list[str] = []

    async def find_user_by_email(self, email: str) -> Optional[User]:
        self.lookups.append(email)
        return self.users.get(email)


class FakeSubscriptionStore:
    """Dict-backed store mirroring the SQL store's conditional writes."""

    def __init__(self, rows: Optional[list[Subscription]] = None):
        self.rows = {row.user_id: row for row in rows or []}
        self.writes: list[tuple] = []
        self.fail_writes = False

    async def get_by_user_id(self, user_id: uuid.UUID) -> Optional[Subscription]:
        return self.rows.get(user_id)

    async def has_active_transaction(self, transaction_id: str) -> bool:
        return any(
            row.hotmart_transaction_id == transaction_id
            and row.status == SubscriptionStatus.ACTIVE
            for row in self.rows.values()
        )

    async def activate(self, user_id, transaction_id, now) -> bool:
        if self.fail_writes:
            raise SubscriptionStoreError("OperationalError")
        row = self.rows.get(user_id)
        if row is None:
            return False
        if row.status == SubscriptionStatus.ACTIVE and row.hotmart_transaction_id == transaction_id:
            return False
        row.status = SubscriptionStatus.ACTIVE
        row.activated_at = now
        row.hotmart_transaction_id = transaction_id
        row.expires_at = None
        self.writes.append(("activate", user_id, transaction_id))
        return True

    async def deactivate(self, user_id, now) -> bool:
        if self.fail_writes:
            raise SubscriptionStoreError("OperationalError")
        row = self.rows.get(user_id)
        if row is None:
            return False
        row.status = SubscriptionStatus.INACTIVE
        row.expires_at = now
        self.writes.append(("deactivate", user_id))
        return True


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_user(user_id: uuid.UUID = USER_ID, email: str = USER_EMAIL) -> User:
    return User(user_id=user_id, email=email)


def make_subscription(
    user_id: uuid.UUID = USER_ID,
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE,
    transaction_id: Optional[str] = None,
    activated_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
) -> Subscription:
    return Subscription(
        subscription_id=uuid.uuid4(),
        user_id=user_id,
        status=status,
        hotmart_transaction_id=transaction_id,
        activated_at=activated_at,
        expires_at=expires_at,
    )


def make_payload(
    event: str = "PURCHASE_APPROVED",
    email: str = USER_EMAIL,
    transaction: str = "HP123456789",
    hottok: str = TEST_HOTTOK,
) -> dict:
    return {
        "hottok": hottok,
        "event": event,
        "data": {
            "buyer": {"email": email},
            "purchase": {"transaction": transaction},
        },
    }


EARLIER = datetime(2026, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def identity() -> FakeIdentityDirectory:
    return FakeIdentityDirectory([make_user()])


@pytest.fixture
def store() -> FakeSubscriptionStore:
    return FakeSubscriptionStore([make_subscription()])


@pytest_asyncio.fixture
async def client(identity, store, clock, monkeypatch):
    """ASGI client with fakes wired in and a fresh rate limiter."""
    monkeypatch.setattr(settings, "HOTMART_WEBHOOK_SECRET", TEST_HOTTOK)
    monkeypatch.setattr(app.state, "rate_limiter", InMemoryRateLimiter(clock=clock))

    app.dependency_overrides[get_identity_directory] = lambda: identity
    app.dependency_overrides[get_subscription_store] = lambda: store

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
