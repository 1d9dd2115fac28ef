import os

# keep the test run away from any developer .env / real services
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone

from app.config import Settings
from app.context import AppContext
from app.main import create_app
from app.repos.collections import COLLECTION_OTP, COLLECTION_USERS, SUBCOLLECTION_WISHLIST
from app.services import otp as otp_service
from tests.fakes import FakeFirestore, FakeImageStore, FakeMailer


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ENV="test",
        EMAIL_USER="shop@example.com",
        EMAIL_PASS="app-password",
        CLOUDINARY_CLOUD_NAME="demo-cloud",
    )


@pytest.fixture
def db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def media() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def ctx(settings, db, mailer, media) -> AppContext:
    return AppContext(settings=settings, db=db, mailer=mailer, media=media)


@pytest_asyncio.fixture
async def client(ctx):
    app = create_app(context=ctx)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def clock(monkeypatch):
    """Freeze the OTP service clock; ``clock.advance(minutes=...)`` moves it."""

    class _Clock:
        def __init__(self):
            self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        def advance(self, **kw):
            self.now += timedelta(**kw)

    c = _Clock()
    monkeypatch.setattr(otp_service, "_now_utc", lambda: c.now)
    return c


# ---------- helpers ----------
def stored_otp(db: FakeFirestore, email: str) -> dict | None:
    return db.docs(COLLECTION_OTP).get(email)


def mk_user(db: FakeFirestore, doc_id: str, **fields) -> None:
    db.put(COLLECTION_USERS, doc_id, fields)


def add_to_wishlist(db: FakeFirestore, user_id: str, product_id, item_id: str | None = None) -> None:
    path = f"{COLLECTION_USERS}/{user_id}/{SUBCOLLECTION_WISHLIST}"
    db.put(path, item_id or f"w-{product_id}", {"productId": product_id, "addedAt": "2026-02-01"})
