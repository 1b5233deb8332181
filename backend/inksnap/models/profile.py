# backend/inksnap/models/profile.py

from sqlalchemy import Boolean, Column, String, Float, Text, DateTime, JSON
from .base import BaseModel


class Profile(BaseModel):
    """Public profile row mirrored from the identity provider.

    ``id`` is the identity's opaque id, so a profile is created with the id the
    provider issued rather than a generated one.
    """

    __tablename__ = "profiles"

    id                = Column(String(64), primary_key=True)
    name              = Column(String, nullable=True)
    username          = Column(String, unique=True, index=True, nullable=True)
    email             = Column(String, nullable=True)
    profile_photo_url = Column(String, nullable=True)
    profile_photo_public_id = Column(String, nullable=True)
    is_artist         = Column(Boolean, default=False, nullable=False)
    bio               = Column(Text, nullable=True)
    location          = Column(String, nullable=True)
    latitude          = Column(Float, nullable=True)
    longitude         = Column(Float, nullable=True)
    studio_name       = Column(String, nullable=True)
    styles            = Column(JSON, nullable=True)
    last_active       = Column(DateTime(timezone=True), nullable=True)
