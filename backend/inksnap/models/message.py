from sqlalchemy import Column, Integer, Text, ForeignKey, String, Boolean, Index
from sqlalchemy.orm import relationship

from .base import BaseModel


class Message(BaseModel):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_time", "conversation_id", "created_at"),
        Index("ix_messages_receiver_unread", "receiver_id", "is_read"),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False)
    sender_id = Column(String(64), ForeignKey("profiles.id"), nullable=False)
    receiver_id = Column(String(64), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    conversation = relationship("Conversation")
    sender = relationship("Profile", foreign_keys=[sender_id])
    receiver = relationship("Profile", foreign_keys=[receiver_id])
