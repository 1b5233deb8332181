from sqlalchemy import Column, Integer, String, Date, ForeignKey
from .base import BaseModel


class ConventionDate(BaseModel):
    __tablename__ = "convention_dates"

    id = Column(Integer, primary_key=True, index=True)
    artist_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    event_name = Column(String, nullable=False)
    location = Column(String, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
