"""
Pytest configuration and fixtures for the signage campaign backend.

The database and uploads directory are pointed at a temporary location
before any `signage` module is imported, since both are configured at
import time.
"""

import os
import tempfile

_TMP_ROOT = tempfile.mkdtemp(prefix="signage-tests-")
os.environ["SIGNAGE_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_ROOT, 'test.db')}"
os.environ["SIGNAGE_UPLOADS_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ.pop("SIGNAGE_API_KEY", None)

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from signage.db import Base, SessionLocal, engine  # noqa: E402
from signage.main import app  # noqa: E402
from signage.models.campaign import Campaign  # noqa: E402
from signage.models.group import Group  # noqa: E402
from signage.models.slide import Slide  # noqa: E402
from signage.services.monitor import ActiveCampaignCache  # noqa: E402
from signage.services.realtime import RealtimeHub, hub  # noqa: E402
from signage.services.scheduling import format_timestamp  # noqa: E402
from signage.services.storage import MediaStorage  # noqa: E402

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
MASTER_HEADERS = {"X-Account-Role": "master", "X-Account-ID": "master"}


class RecordingHub(RealtimeHub):
    """RealtimeHub that keeps every published event instead of sending it."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, dict]] = []

    async def publish(self, event_type, payload=None):
        self.events.append((event_type, dict(payload or {})))
        return len(self.events)


class Factory:
    def __init__(self, db) -> None:
        self.db = db

    def group(self, name="Operations", display_order=None, **fields):
        if display_order is None:
            display_order = self.db.query(Group).count() + 1
        group = Group(name=name, display_order=display_order, **fields)
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)
        return group

    def campaign(self, group, name="Campaign", starts_at=None, ends_at=None, priority=1, enabled=True):
        starts_at = starts_at if starts_at is not None else NOW - timedelta(hours=1)
        ends_at = ends_at if ends_at is not None else NOW + timedelta(hours=1)
        campaign = Campaign(
            group_id=group.id,
            name=name,
            starts_at=format_timestamp(starts_at) if isinstance(starts_at, datetime) else starts_at,
            ends_at=format_timestamp(ends_at) if isinstance(ends_at, datetime) else ends_at,
            priority=priority,
            enabled=enabled,
        )
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)
        return campaign

    def slide(self, group, campaign=None, name=None, src=None, position=None, is_locked=False, type="image"):
        campaign_id = campaign.id if campaign is not None else None
        if position is None:
            query = self.db.query(Slide).filter(Slide.group_id == group.id)
            if campaign_id is None:
                query = query.filter(Slide.campaign_id.is_(None))
            else:
                query = query.filter(Slide.campaign_id == campaign_id)
            position = query.count()
        slide = Slide(
            group_id=group.id,
            campaign_id=campaign_id,
            type=type,
            name=name or f"slide-{position}",
            src=src or f"/uploads/images/slide-{group.id}-{campaign_id}-{position}.png",
            duration=5000,
            position=position,
            is_locked=is_locked,
        )
        self.db.add(slide)
        self.db.commit()
        self.db.refresh(slide)
        return slide


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def factory(db_session):
    return Factory(db_session)


@pytest.fixture
def recording_hub():
    return RecordingHub()


@pytest.fixture
def cache():
    return ActiveCampaignCache()


@pytest.fixture
def media_storage(tmp_path):
    media = MediaStorage(str(tmp_path / "uploads"))
    media.ensure()
    return media


@pytest.fixture
def published(monkeypatch):
    """Events the API publishes through the shared hub."""
    events: list[tuple[str, dict]] = []

    async def fake_publish(event_type, payload=None):
        events.append((event_type, dict(payload or {})))
        return len(events)

    monkeypatch.setattr(hub, "publish", fake_publish)
    return events


@pytest.fixture
def client(published):
    return TestClient(app)


@pytest.fixture
def master_headers():
    return dict(MASTER_HEADERS)
