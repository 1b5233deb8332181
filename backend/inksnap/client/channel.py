"""One open conversation: history, live pushes, read marking and sending."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set

from ..schemas.message import MessageRead
from .component import Component, LoadState
from .errors import GatewayError, InkSnapError, UploadError, ValidationError
from .gateway import Gateway, RealtimeSubscription
from .notifications import Notifier
from .session import UnreadCounter

if TYPE_CHECKING:
    from .directory import ConversationDirectory

logger = logging.getLogger(__name__)

CHAT_IMAGE_FOLDER = "chat_images"
MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024


@dataclass
class Attachment:
    data: bytes
    filename: str
    content_type: Optional[str] = None


class MessageChannel(Component):
    """State machine: ``loading -> ready | error``, and ``closed`` on teardown.

    While ready, inserts on ``messages`` for this conversation are pushed in;
    only the counter-party's messages are appended from pushes, our own are
    appended when the send completes.
    """

    def __init__(
        self,
        gateway: Gateway,
        conversation_id: int,
        identity_id: str,
        other_id: Optional[str] = None,
        directory: Optional["ConversationDirectory"] = None,
        unread: Optional[UnreadCounter] = None,
        notifier: Optional[Notifier] = None,
        on_scroll: Optional[Callable[[int], None]] = None,
    ):
        super().__init__(gateway, notifier)
        self.conversation_id = conversation_id
        self.identity_id = identity_id
        self.other_id = other_id
        self.directory = directory
        self.unread = unread
        self.on_scroll = on_scroll
        self.messages: List[MessageRead] = []
        self._seen: Set[int] = set()
        self.compose_text = ""
        self.attachment: Optional[Attachment] = None
        self.sending = False
        self._subscription: Optional[RealtimeSubscription] = None

    # message list

    def _scroll(self) -> None:
        if self.on_scroll is not None:
            self.on_scroll(len(self.messages))

    def _append(self, message: MessageRead) -> bool:
        if message.id in self._seen:
            return False
        self._seen.add(message.id)
        self.messages.append(message)
        self._scroll()
        return True

    # lifecycle

    async def open(self) -> None:
        self.state = LoadState.LOADING
        try:
            rows = await self.gateway.select(
                "messages",
                {"conversation_id": self.conversation_id},
                order="created_at",
            )
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.error = exc.message
                self.report("Could not load messages", exc)
            return
        if not self.mounted:
            return

        history = [MessageRead.model_validate(row) for row in rows]
        self.messages = []
        self._seen = set()
        for message in history:
            self._seen.add(message.id)
            self.messages.append(message)
        self._scroll()
        self.state = LoadState.READY
        self.error = None

        try:
            subscription = await self.gateway.subscribe(
                "messages", "conversation_id", self.conversation_id, self._on_insert
            )
        except GatewayError as exc:
            self.report("Live updates unavailable", exc)
            subscription = None
        if subscription is not None:
            if self.mounted:
                self._subscription = subscription
            else:
                await subscription.unsubscribe()
                return
        await self.mark_read()

    async def close(self) -> None:
        self.unmount()
        self.state = LoadState.CLOSED
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()

    # reading

    async def mark_read(self) -> int:
        """Mark everything addressed to us here as read, then resync the total."""
        try:
            rows = await self.gateway.update(
                "messages",
                {"is_read": True},
                {
                    "conversation_id": self.conversation_id,
                    "receiver_id": self.identity_id,
                    "is_read": False,
                },
            )
        except GatewayError as exc:
            self.report("Could not mark messages as read", exc)
            return 0
        if not self.mounted:
            return len(rows)
        read_ids = {row["id"] for row in rows}
        for message in self.messages:
            if message.id in read_ids:
                message.is_read = True
        if self.directory is not None:
            await self.directory.refresh_unread()
        elif self.unread is not None:
            try:
                await self.unread.refresh(self.identity_id)
            except GatewayError as exc:
                logger.warning("Unread refresh failed: %s", exc.message)
        return len(rows)

    async def _on_insert(self, row: Dict[str, Any]) -> None:
        if not self.mounted or self.state != LoadState.READY:
            return
        message = MessageRead.model_validate(row)
        if message.conversation_id != self.conversation_id or message.sender_id == self.identity_id:
            return
        if not self._append(message):
            return
        try:
            await self.gateway.update("messages", {"is_read": True}, {"id": message.id})
            message.is_read = True
        except GatewayError as exc:
            logger.warning("Could not mark message %s read: %s", message.id, exc.message)

    # composing

    def attach(self, data: bytes, filename: str, content_type: Optional[str] = None) -> bool:
        if len(data) > MAX_ATTACHMENT_BYTES:
            self.report("Image too large", ValidationError("Image must be less than 5MB.", "image"))
            return False
        self.attachment = Attachment(data=data, filename=filename, content_type=content_type)
        return True

    def clear_attachment(self) -> None:
        self.attachment = None

    @property
    def can_send(self) -> bool:
        return (
            self.state == LoadState.READY
            and not self.sending
            and bool(self.compose_text.strip() or self.attachment)
        )

    async def send(self) -> Optional[MessageRead]:
        """Upload the attachment (if any), insert the message, then append it.

        A failed upload or insert keeps the compose state so the user can
        retry. Calls made while a send is in flight are ignored.
        """
        if not self.can_send:
            return None
        self.sending = True
        uploaded: Optional[Dict[str, str]] = None
        try:
            if self.attachment is not None:
                try:
                    uploaded = await self.gateway.upload(
                        self.attachment.data,
                        self.attachment.filename,
                        CHAT_IMAGE_FOLDER,
                        self.attachment.content_type,
                    )
                except UploadError as exc:
                    self.report("Image upload failed", exc)
                    return None
            values: Dict[str, Any] = {
                "conversation_id": self.conversation_id,
                "sender_id": self.identity_id,
                "content": self.compose_text.strip() or None,
                "image_url": uploaded["url"] if uploaded else None,
            }
            if self.other_id:
                values["receiver_id"] = self.other_id
            try:
                row = await self.gateway.insert("messages", values)
            except InkSnapError as exc:
                if uploaded:
                    await self._discard_upload(uploaded["public_id"])
                self.report("Message not sent", exc)
                return None
        finally:
            self.sending = False

        message = MessageRead.model_validate(row)
        if not self.mounted:
            return message
        self._append(message)
        self.compose_text = ""
        self.attachment = None
        if self.directory is not None:
            self.directory.note_sent(message)
        return message

    async def _discard_upload(self, public_id: str) -> None:
        try:
            await self.gateway.delete_uploads([public_id])
        except GatewayError as exc:
            logger.warning("Orphaned upload %s: %s", public_id, exc.message)
