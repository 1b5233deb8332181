"""Row-level policies for the table interface.

Each table exposed over ``/rest/{table}`` is described by a ``TablePolicy``:
which rows an identity may read (as a query scope and as a predicate for
realtime delivery), which columns may be written, and the checks applied on
insert, update and delete. Anything not listed is refused.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from .. import models
from . import (
    crud_booking,
    crud_convention_date,
    crud_follow,
    crud_message,
    crud_profile,
    crud_review,
)
from .errors import InvalidRequest


@dataclass(frozen=True)
class Embed:
    """A related row joined into results, keyed by a foreign-key column."""

    column: str
    table: str
    fields: tuple


PROFILE_CARD = ("id", "name", "username", "profile_photo_url", "is_artist")


@dataclass(frozen=True)
class TablePolicy:
    name: str
    model: Any
    can_read: Callable[[Mapping[str, Any], str], bool]
    read_scope: Callable[[Query, str], Query]
    insertable: FrozenSet[str] = frozenset()
    check_insert: Optional[Callable[[Session, Dict[str, Any], str], Dict[str, Any]]] = None
    after_insert: Optional[Callable[[Session, Any], None]] = None
    updatable: FrozenSet[str] = frozenset()
    update_scope: Optional[Callable[[Query, str, Dict[str, Any]], Query]] = None
    delete_scope: Optional[Callable[[Query, str], Query]] = None
    embeds: Mapping[str, Embed] = field(default_factory=dict)
    default_order: str = "created_at"

    @property
    def columns(self) -> FrozenSet[str]:
        return frozenset(c.key for c in self.model.__table__.columns)

    def column(self, name: str):
        if name not in self.columns:
            raise InvalidRequest(
                f"Unknown column '{name}' on {self.name}",
                {name: "unknown_column"},
            )
        return getattr(self.model, name)


def _everyone(row: Mapping[str, Any], actor_id: str) -> bool:
    return True


def _no_scope(query: Query, actor_id: str) -> Query:
    return query


def _owned_by(column_name: str):
    def scope(query: Query, actor_id: str, *args) -> Query:
        model = query.column_descriptions[0]["entity"]
        return query.filter(getattr(model, column_name) == actor_id)

    return scope


TABLES: Dict[str, TablePolicy] = {
    "profiles": TablePolicy(
        name="profiles",
        model=models.Profile,
        can_read=_everyone,
        read_scope=_no_scope,
        insertable=crud_profile.WRITABLE_COLUMNS | {"id"},
        check_insert=crud_profile.check_insert,
        updatable=crud_profile.WRITABLE_COLUMNS,
        update_scope=_owned_by("id"),
    ),
    "conversations": TablePolicy(
        name="conversations",
        model=models.Conversation,
        can_read=lambda row, actor: actor in (row.get("participant_one_id"), row.get("participant_two_id")),
        read_scope=lambda q, actor: q.filter(
            or_(
                models.Conversation.participant_one_id == actor,
                models.Conversation.participant_two_id == actor,
            )
        ),
        embeds={
            "participant_one": Embed("participant_one_id", "profiles", PROFILE_CARD),
            "participant_two": Embed("participant_two_id", "profiles", PROFILE_CARD),
        },
        default_order="last_message_at",
    ),
    "messages": TablePolicy(
        name="messages",
        model=models.Message,
        can_read=lambda row, actor: actor in (row.get("sender_id"), row.get("receiver_id")),
        read_scope=lambda q, actor: q.filter(
            or_(models.Message.sender_id == actor, models.Message.receiver_id == actor)
        ),
        insertable=frozenset({"conversation_id", "sender_id", "receiver_id", "content", "image_url"}),
        check_insert=crud_message.check_insert,
        after_insert=crud_message.after_insert,
        updatable=frozenset({"is_read"}),
        update_scope=_owned_by("receiver_id"),
        embeds={"sender": Embed("sender_id", "profiles", PROFILE_CARD)},
    ),
    "bookings": TablePolicy(
        name="bookings",
        model=models.Booking,
        can_read=lambda row, actor: actor in (row.get("client_id"), row.get("artist_id")),
        read_scope=lambda q, actor: q.filter(
            or_(models.Booking.client_id == actor, models.Booking.artist_id == actor)
        ),
        insertable=crud_booking.INSERTABLE_COLUMNS,
        check_insert=crud_booking.check_insert,
        updatable=frozenset({"status"}),
        update_scope=crud_booking.update_scope,
        embeds={
            "client": Embed("client_id", "profiles", PROFILE_CARD + ("email",)),
            "artist": Embed("artist_id", "profiles", PROFILE_CARD),
            "convention_date": Embed(
                "convention_date_id",
                "convention_dates",
                ("id", "event_name", "location", "start_date", "end_date"),
            ),
        },
    ),
    "reviews": TablePolicy(
        name="reviews",
        model=models.Review,
        can_read=_everyone,
        read_scope=_no_scope,
        insertable=frozenset({"artist_id", "reviewer_id", "stars", "comment"}),
        check_insert=crud_review.check_insert,
        delete_scope=_owned_by("reviewer_id"),
        embeds={
            "reviewer": Embed("reviewer_id", "profiles", PROFILE_CARD),
            "artist": Embed("artist_id", "profiles", PROFILE_CARD),
        },
    ),
    "follows": TablePolicy(
        name="follows",
        model=models.Follow,
        can_read=_everyone,
        read_scope=_no_scope,
        insertable=frozenset({"follower_id", "following_id"}),
        check_insert=crud_follow.check_insert,
        delete_scope=_owned_by("follower_id"),
        embeds={
            "follower": Embed("follower_id", "profiles", PROFILE_CARD),
            "following": Embed("following_id", "profiles", PROFILE_CARD),
        },
    ),
    "convention_dates": TablePolicy(
        name="convention_dates",
        model=models.ConventionDate,
        can_read=_everyone,
        read_scope=_no_scope,
        insertable=crud_convention_date.WRITABLE_COLUMNS | {"artist_id"},
        check_insert=crud_convention_date.check_insert,
        updatable=crud_convention_date.WRITABLE_COLUMNS,
        update_scope=_owned_by("artist_id"),
        delete_scope=_owned_by("artist_id"),
        default_order="start_date",
    ),
}


def get_policy(table: str) -> TablePolicy:
    policy = TABLES.get(table)
    if policy is None:
        raise InvalidRequest(f"Unknown table '{table}'", {"table": "unknown"})
    return policy
