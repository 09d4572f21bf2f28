import os

# 測試一律用記憶體 SQLite，必須在 import app 之前設定
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import main
from database import Base, SessionLocal, engine
from identity import ADMIN, issue_token
from migrate import ensure_schema
from models import Booking, BookingStatus, Venue
from time_window import TZ


@pytest.fixture(autouse=True)
def clean_db():
    ensure_schema(engine)
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {issue_token('boss', role=ADMIN)}"}


def auth(subject):
    return {"Authorization": f"Bearer {issue_token(subject)}"}


def tw(y, mo, d, h, mi=0):
    """台北時間"""
    return datetime(y, mo, d, h, mi, tzinfo=TZ)


def make_booking(db, venue=Venue.main_hall, start=None, hours=3,
                 status=BookingStatus.approved, owner="alice"):
    start = start or tw(2025, 3, 4, 9)
    b = Booking(
        venue=venue,
        start_ts=start,
        end_ts=start + timedelta(hours=hours),
        status=status,
        owner=owner,
        created_by=owner,
    )
    db.add(b)
    db.commit()
    db.refresh(b)
    return b


def parse_ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)
