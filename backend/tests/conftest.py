import os
import tempfile

os.environ.setdefault("PYTEST_RUN", "1")
os.environ.setdefault("WS_BUS_ENABLED", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="inksnap-uploads-"))

from dotenv import load_dotenv

load_dotenv()

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inksnap import models
from inksnap.client.local_gateway import LocalGateway
from inksnap.core.config import settings
from inksnap.database import Base
from inksnap.realtime.bus import RealtimeHub
from inksnap.services import geocode as geocode_service


@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch):
    """Keep uploads on disk under tmp_path and outbound calls disabled."""
    upload_dir = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(upload_dir))
    monkeypatch.setattr(settings, "CLOUDINARY_CLOUD_NAME", "")
    monkeypatch.setattr(settings, "CLOUDINARY_API_KEY", "")
    monkeypatch.setattr(settings, "CLOUDINARY_API_SECRET", "")
    monkeypatch.setattr(settings, "GOOGLE_MAPS_API_KEY", "")
    monkeypatch.setattr(settings, "WS_BUS_ENABLED", False)
    return upload_dir


@pytest.fixture
def Session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def hub():
    return RealtimeHub()


@pytest.fixture
def make_profile(Session):
    def _make(profile_id, **fields):
        fields.setdefault("username", profile_id)
        fields.setdefault("name", profile_id.title())
        db = Session()
        profile = models.Profile(id=profile_id, **fields)
        db.add(profile)
        db.commit()
        db.close()
        return profile

    return _make


@pytest.fixture
def gateway_for(Session, hub):
    def _gateway(identity_id):
        return LocalGateway(identity_id, session_factory=Session, hub=hub)

    return _gateway


@pytest.fixture
def fake_geocode(monkeypatch):
    mock = AsyncMock(return_value=None)
    monkeypatch.setattr(geocode_service, "geocode_address", mock)
    return mock
