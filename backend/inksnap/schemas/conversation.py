from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .profile import ProfileCard


class ConversationRead(BaseModel):
    id: int
    participant_one_id: str
    participant_two_id: str
    last_message_preview: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    created: bool = False

    model_config = {"from_attributes": True, "extra": "ignore"}


class ConversationSummary(BaseModel):
    """One row of ``list_conversations_with_details``, from the viewer's side."""

    id: int
    other_participant: ProfileCard
    last_message_preview: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    created_at: Optional[datetime] = None

    model_config = {"extra": "ignore"}
