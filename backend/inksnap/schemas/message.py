from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: str
    receiver_id: str
    content: Optional[str] = None
    image_url: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "extra": "ignore"}
