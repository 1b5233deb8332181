from typing import Any, Dict

from sqlalchemy.orm import Session

from .. import models
from .errors import InvalidRequest, NotFoundError, PolicyError

PREVIEW_MAX_CHARS = 120
IMAGE_PREVIEW = "Sent an image"


def preview_for(message: models.Message) -> str:
    text = (message.content or "").strip()
    if not text:
        return IMAGE_PREVIEW
    if len(text) > PREVIEW_MAX_CHARS:
        return text[: PREVIEW_MAX_CHARS - 1].rstrip() + "…"
    return text


def check_insert(db: Session, values: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    """Enforce that sender and receiver are the conversation's two participants.

    The sender is always the acting identity; the receiver is derived from the
    conversation, and a mismatching receiver in the payload is refused.
    """
    conversation_id = values.get("conversation_id")
    conversation = db.get(models.Conversation, conversation_id) if conversation_id else None
    if conversation is None:
        raise NotFoundError("Conversation not found.", {"conversation_id": "not_found"})
    if not conversation.has_participant(actor_id):
        raise PolicyError("Not a participant in this conversation.", {"conversation_id": "forbidden"})
    if values.get("sender_id", actor_id) != actor_id:
        raise PolicyError("Messages can only be sent as yourself.", {"sender_id": "forbidden"})

    receiver_id = conversation.other_participant_id(actor_id)
    if values.get("receiver_id", receiver_id) != receiver_id:
        raise PolicyError(
            "Receiver must be the other participant.",
            {"receiver_id": "not_participant"},
        )

    content = (values.get("content") or "").strip() or None
    image_url = (values.get("image_url") or "").strip() or None
    if not content and not image_url:
        raise InvalidRequest(
            "Message must include content or an image.",
            {"content": "required"},
        )
    values.update(
        sender_id=actor_id,
        receiver_id=receiver_id,
        content=content,
        image_url=image_url,
        is_read=False,
    )
    return values


def after_insert(db: Session, message: models.Message) -> None:
    """Denormalize the latest message onto its conversation."""
    conversation = db.get(models.Conversation, message.conversation_id)
    if conversation is None:
        return
    conversation.last_message_preview = preview_for(message)
    conversation.last_message_at = message.created_at
    db.add(conversation)
