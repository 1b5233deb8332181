from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field

from .profile import ProfileCard


class ReviewRead(BaseModel):
    id: int
    artist_id: str
    reviewer_id: str
    stars: Annotated[int, Field(ge=1, le=5)]
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    reviewer: Optional[ProfileCard] = None

    model_config = {"from_attributes": True, "extra": "ignore"}
