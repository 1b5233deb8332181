import logging
from typing import Callable, Optional

from .bookings import BookingSummary
from .channel import MessageChannel
from .directory import ConversationDirectory
from .notifications import Notifier
from .session import SessionContext

logger = logging.getLogger(__name__)


class ChatView:
    """Conversation list plus at most one open channel and its side panel.

    Opening a conversation closes the previous channel first, so two
    channels for the same conversation never coexist.
    """

    def __init__(
        self,
        session: SessionContext,
        notifier: Optional[Notifier] = None,
        on_scroll: Optional[Callable[[int], None]] = None,
    ):
        if session.identity_id is None:
            raise ValueError("chat requires a signed-in session")
        self.session = session
        self.gateway = session.gateway
        self.notifier = notifier if notifier is not None else session.notifier
        self.on_scroll = on_scroll
        self.directory = ConversationDirectory(
            self.gateway,
            session.identity_id,
            session.unread,
            self.notifier,
        )
        self.channel: Optional[MessageChannel] = None
        self.summary: Optional[BookingSummary] = None

    async def load(self):
        return await self.directory.load()

    async def open(self, conversation_id: int) -> Optional[MessageChannel]:
        await self.close_channel()
        conversation = self.directory.select(conversation_id)
        other_id = conversation.other_participant.id if conversation else None
        channel = MessageChannel(
            self.gateway,
            conversation_id,
            self.session.identity_id,
            other_id=other_id,
            directory=self.directory,
            notifier=self.notifier,
            on_scroll=self.on_scroll,
        )
        self.channel = channel
        if other_id:
            self.summary = BookingSummary(self.gateway, self.session.identity_id, other_id, self.notifier)
        await channel.open()
        if self.summary is not None and self.channel is channel:
            await self.summary.load()
        return channel

    async def open_with(self, other_id: str) -> Optional[MessageChannel]:
        """Start or reuse the conversation with ``other_id`` and open it."""
        summary = await self.directory.start_conversation(other_id)
        if summary is None:
            return None
        return await self.open(summary.id)

    async def close_channel(self) -> None:
        channel, self.channel = self.channel, None
        if self.summary is not None:
            self.summary.unmount()
            self.summary = None
        if channel is not None:
            await channel.close()

    async def close(self) -> None:
        await self.close_channel()
        self.directory.unmount()
