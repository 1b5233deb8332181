from sqlalchemy import Column, String, ForeignKey
from .base import BaseModel


class Follow(BaseModel):
    """Directed follow edge; the composite key keeps each edge unique."""

    __tablename__ = "follows"

    follower_id  = Column(String(64), ForeignKey("profiles.id"), primary_key=True)
    following_id = Column(String(64), ForeignKey("profiles.id"), primary_key=True, index=True)
