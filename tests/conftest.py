import os
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy.engine import make_url

os.environ.setdefault("DATABASE_URL", "sqlite:////tmp/appprompt_test.db")
os.environ.setdefault("PIXGO_API_URL", "https://pixgo.test/api/v1")
os.environ.setdefault("PIXGO_API_KEY", "test-pixgo-key")

from fastapi.testclient import TestClient
from appprompt.main import app
from appprompt.config import Settings
from appprompt.db import SessionLocal, init_db
from appprompt.models import User
from appprompt.security import hash_password

PASSWORD = "s3cret-pass"
ROOT = Path(__file__).resolve().parent.parent


def _sqlite_file(database_url: str) -> Path | None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database:
        return None
    return Path(url.database)


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Build a fresh schema with the Alembic revisions and drop it afterwards."""
    settings = Settings()
    db_file = _sqlite_file(settings.database_url)
    if db_file is not None:
        db_file.unlink(missing_ok=True)

    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "migrations"))
    command.upgrade(config, "head")
    init_db(settings)

    yield

    if db_file is not None:
        db_file.unlink(missing_ok=True)


@pytest.fixture(scope="module")
def client(apply_migrations):
    """Yields a TestClient with lifespan events."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_user():
    """Insert a user row directly; timestamps default to an active trial."""

    def _make(
        *,
        trial_ends_at: datetime | None | str = "default",
        subscription_ends_at: datetime | None = None,
        name: str = "Test User",
    ) -> User:
        now = datetime.now(timezone.utc)
        if trial_ends_at == "default":
            trial_ends_at = now + timedelta(hours=24)
        with SessionLocal() as session:
            user = User(
                name=name,
                email=f"{uuid.uuid4().hex}@example.com",
                password_hash=hash_password(PASSWORD),
                trial_ends_at=trial_ends_at,
                subscription_ends_at=subscription_ends_at,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    return _make


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return value

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock(monkeypatch):
    """Pin the entitlement clock used by every controller."""
    from appprompt.services import entitlement

    frozen = FrozenClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(entitlement, "utcnow", lambda: frozen.now)
    return frozen
