from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Conversation(BaseModel):
    """A 1:1 channel between two profiles.

    The pair is stored in canonical order (``participant_one_id`` sorts first)
    so the unique constraint covers the unordered pair.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint(
            "participant_one_id",
            "participant_two_id",
            name="uq_conversations_pair",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    participant_one_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    participant_two_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    last_message_preview = Column(Text, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    participant_one = relationship("Profile", foreign_keys=[participant_one_id])
    participant_two = relationship("Profile", foreign_keys=[participant_two_id])

    def other_participant_id(self, identity_id: str) -> str:
        if identity_id == self.participant_one_id:
            return self.participant_two_id
        return self.participant_one_id

    def has_participant(self, identity_id: str) -> bool:
        return identity_id in (self.participant_one_id, self.participant_two_id)
