from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class Review(BaseModel):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("reviewer_id", "artist_id", name="uq_reviews_reviewer_artist"),
        CheckConstraint("stars >= 1 AND stars <= 5", name="ck_reviews_stars_range"),
    )

    id          = Column(Integer, primary_key=True, index=True)
    artist_id   = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    reviewer_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    stars       = Column(Integer, nullable=False)
    comment     = Column(Text, nullable=True)

    artist = relationship("Profile", foreign_keys=[artist_id])
    reviewer = relationship("Profile", foreign_keys=[reviewer_id])
