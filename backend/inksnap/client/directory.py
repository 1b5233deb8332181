"""Conversation list for the signed-in identity."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..schemas.conversation import ConversationRead, ConversationSummary
from ..schemas.message import MessageRead
from ..schemas.profile import ProfileCard
from .component import Component, LoadState
from .errors import GatewayError, InkSnapError
from .gateway import Gateway
from .notifications import Notifier
from .session import UnreadCounter

logger = logging.getLogger(__name__)


class ConversationDirectory(Component):
    def __init__(
        self,
        gateway: Gateway,
        identity_id: str,
        unread: UnreadCounter,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(gateway, notifier)
        self.identity_id = identity_id
        self.unread = unread
        self.conversations: List[ConversationSummary] = []
        self.selected_id: Optional[int] = None

    async def list_conversations(self, identity_id: Optional[str] = None) -> List[ConversationSummary]:
        """Fetch summaries, most recent activity first. Raises ``GatewayError``."""
        rows = await self.gateway.rpc(
            "list_conversations_with_details",
            identity_id=identity_id or self.identity_id,
        )
        return [ConversationSummary.model_validate(row) for row in rows or []]

    async def load(self) -> List[ConversationSummary]:
        self.state = LoadState.LOADING
        try:
            conversations = await self.list_conversations()
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.error = exc.message
                self.report("Could not load conversations", exc)
            return self.conversations
        if not self.mounted:
            return self.conversations
        self.conversations = conversations
        self.state = LoadState.READY
        self.error = None
        return self.conversations

    def get(self, conversation_id: int) -> Optional[ConversationSummary]:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def select(self, conversation_id: int) -> Optional[ConversationSummary]:
        """Mark a conversation as open; its unread badge is cleared locally."""
        conversation = self.get(conversation_id)
        self.selected_id = conversation_id
        if conversation is not None and conversation.unread_count:
            self.unread.decrement(conversation.unread_count)
            conversation.unread_count = 0
        return conversation

    async def refresh_unread(self) -> int:
        try:
            return await self.unread.refresh(self.identity_id)
        except GatewayError as exc:
            self.report("Could not refresh unread messages", exc)
            return self.unread.value

    async def start_conversation(self, other_id: str) -> Optional[ConversationSummary]:
        """Open (or reuse) the conversation with ``other_id`` and list it first."""
        try:
            conversation = ConversationRead.model_validate(await self.gateway.rpc(
                "start_or_get_conversation",
                identity_a=self.identity_id,
                identity_b=other_id,
            ))
            existing = self.get(conversation.id)
            if existing is not None:
                return existing
            cards = await self.gateway.select("profiles", {"id": other_id}, limit=1)
        except InkSnapError as exc:
            self.report("Could not start conversation", exc)
            return None
        if not self.mounted:
            return None
        card = ProfileCard.model_validate(cards[0]) if cards else ProfileCard(id=other_id)
        summary = ConversationSummary(
            id=conversation.id,
            other_participant=card,
            last_message_preview=conversation.last_message_preview,
            last_message_at=conversation.last_message_at,
            created_at=conversation.created_at,
        )
        self.conversations.insert(0, summary)
        return summary

    def note_sent(self, message: MessageRead) -> None:
        """Reflect a message we just sent in the list without refetching."""
        conversation = self.get(message.conversation_id)
        if conversation is None:
            return
        conversation.last_message_preview = (message.content or "").strip() or "Sent an image"
        conversation.last_message_at = message.created_at or datetime.now(timezone.utc)
