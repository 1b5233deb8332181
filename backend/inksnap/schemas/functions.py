from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    url: str
    public_id: str


class DeleteUploadRequest(BaseModel):
    public_ids: List[str] = Field(default_factory=list)


class DeleteUploadResponse(BaseModel):
    deleted: List[str] = Field(default_factory=list)


class GeocodeRequest(BaseModel):
    address: str


class GeocodeResponse(BaseModel):
    latitude: float
    longitude: float
    display_name: Optional[str] = None


class DeleteAccountResponse(BaseModel):
    deleted: Dict[str, int] = Field(default_factory=dict)
