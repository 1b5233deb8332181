from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from ..models.booking_status import BookingStatus
from .profile import ProfileCard


class ConventionDateRead(BaseModel):
    id: int
    artist_id: Optional[str] = None
    event_name: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    model_config = {"from_attributes": True, "extra": "ignore"}


class BookingRead(BaseModel):
    id: int
    client_id: str
    artist_id: str
    requested_datetime: datetime
    service_description: Optional[str] = None
    notes: Optional[str] = None
    client_phone: Optional[str] = None
    reference_image_url: Optional[str] = None
    convention_date_id: Optional[int] = None
    status: BookingStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    client: Optional[ProfileCard] = None
    artist: Optional[ProfileCard] = None
    convention_date: Optional[ConventionDateRead] = None

    model_config = {"from_attributes": True, "extra": "ignore"}

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING
