from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ProfileCard(BaseModel):
    """Public subset of a profile embedded in other rows."""

    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    profile_photo_url: Optional[str] = None
    is_artist: bool = False
    email: Optional[str] = None

    model_config = {"from_attributes": True, "extra": "ignore"}


class ProfileRead(ProfileCard):
    profile_photo_public_id: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    studio_name: Optional[str] = None
    styles: Optional[List[str]] = Field(default_factory=list)
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArtistSearchResult(BaseModel):
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    profile_photo_url: Optional[str] = None
    location: Optional[str] = None
    studio_name: Optional[str] = None
    styles: Optional[List[str]] = Field(default_factory=list)
    average_rating: float = 0.0
    review_count: int = 0
    distance_km: Optional[float] = None

    model_config = {"extra": "ignore"}
