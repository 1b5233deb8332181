from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus
from .types import LowercaseEnum


class Booking(BaseModel):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_artist_created", "artist_id", "created_at"),
        Index("ix_bookings_client_created", "client_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(String(64), ForeignKey("profiles.id"), nullable=False)
    artist_id = Column(String(64), ForeignKey("profiles.id"), nullable=False)
    requested_datetime = Column(DateTime(timezone=True), nullable=False)
    service_description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    client_phone = Column(String, nullable=True)
    reference_image_url = Column(String, nullable=True)
    convention_date_id = Column(Integer, ForeignKey("convention_dates.id"), nullable=True)
    status = Column(
        LowercaseEnum(BookingStatus),
        nullable=False,
        default=BookingStatus.PENDING,
    )

    client = relationship("Profile", foreign_keys=[client_id])
    artist = relationship("Profile", foreign_keys=[artist_id])
    convention_date = relationship("ConventionDate")
