from typing import Annotated, Optional

from pydantic import BaseModel, Field


class StartConversationParams(BaseModel):
    identity_a: str
    identity_b: str


class SearchArtistsParams(BaseModel):
    keyword: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_text: Optional[str] = None
    limit: Annotated[int, Field(ge=1, le=200)] = 50


class UnreadTotal(BaseModel):
    total: int = 0
