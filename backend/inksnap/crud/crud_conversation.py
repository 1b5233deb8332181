import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from .crud_profile import require_profile
from .crud_rest import serialize_row
from .errors import InvalidRequest, PolicyError

logger = logging.getLogger(__name__)


def canonical_pair(identity_a: str, identity_b: str) -> Tuple[str, str]:
    return (identity_a, identity_b) if identity_a <= identity_b else (identity_b, identity_a)


def _find_pair(db: Session, first: str, second: str) -> models.Conversation | None:
    return (
        db.query(models.Conversation)
        .filter(
            models.Conversation.participant_one_id == first,
            models.Conversation.participant_two_id == second,
        )
        .first()
    )


def start_or_get_conversation(
    db: Session,
    actor_id: str,
    identity_a: str,
    identity_b: str,
) -> Dict[str, Any]:
    """Return the conversation for the unordered pair, creating it if needed.

    Two simultaneous first contacts race on the pair's unique constraint; the
    loser rolls back and reads the winner's row.
    """
    if actor_id not in (identity_a, identity_b):
        raise PolicyError("You can only open conversations you take part in.")
    if identity_a == identity_b:
        raise InvalidRequest("A conversation needs two different identities.", {"identity_b": "self"})
    require_profile(db, identity_a, "identity_a")
    require_profile(db, identity_b, "identity_b")

    first, second = canonical_pair(identity_a, identity_b)
    conversation = _find_pair(db, first, second)
    created = False
    if conversation is None:
        conversation = models.Conversation(participant_one_id=first, participant_two_id=second)
        db.add(conversation)
        try:
            db.commit()
            created = True
        except IntegrityError:
            db.rollback()
            logger.info("Conversation %s/%s created concurrently; reusing it", first, second)
            conversation = _find_pair(db, first, second)
        if conversation is not None:
            db.refresh(conversation)
    row = serialize_row(conversation)
    row["created"] = created
    return row


def unread_counts_by_conversation(db: Session, identity_id: str) -> Dict[int, int]:
    rows = (
        db.query(models.Message.conversation_id, func.count(models.Message.id))
        .filter(
            models.Message.receiver_id == identity_id,
            models.Message.is_read.is_(False),
        )
        .group_by(models.Message.conversation_id)
        .all()
    )
    return {int(cid): int(n) for cid, n in rows}


def unread_total(db: Session, identity_id: str) -> int:
    return int(
        db.query(func.count(models.Message.id))
        .filter(
            models.Message.receiver_id == identity_id,
            models.Message.is_read.is_(False),
        )
        .scalar()
        or 0
    )


def list_conversations_with_details(db: Session, identity_id: str) -> List[Dict[str, Any]]:
    """Conversations for ``identity_id``, most recent activity first.

    Each row carries the other participant's public card and the viewer's
    unread count.
    """
    activity = func.coalesce(models.Conversation.last_message_at, models.Conversation.created_at)
    conversations = (
        db.query(models.Conversation)
        .filter(
            or_(
                models.Conversation.participant_one_id == identity_id,
                models.Conversation.participant_two_id == identity_id,
            )
        )
        .order_by(activity.desc(), models.Conversation.id.desc())
        .all()
    )
    if not conversations:
        return []

    other_ids = {c.other_participant_id(identity_id) for c in conversations}
    profiles = {
        p.id: p
        for p in db.query(models.Profile).filter(models.Profile.id.in_(other_ids))
    }
    unread = unread_counts_by_conversation(db, identity_id)

    results: List[Dict[str, Any]] = []
    for conversation in conversations:
        other_id = conversation.other_participant_id(identity_id)
        other = profiles.get(other_id)
        results.append({
            "id": conversation.id,
            "other_participant": {
                "id": other_id,
                "name": getattr(other, "name", None),
                "username": getattr(other, "username", None),
                "profile_photo_url": getattr(other, "profile_photo_url", None),
                "is_artist": bool(getattr(other, "is_artist", False)),
            },
            "last_message_preview": conversation.last_message_preview,
            "last_message_at": conversation.last_message_at,
            "unread_count": unread.get(conversation.id, 0),
            "created_at": conversation.created_at,
        })
    return results
