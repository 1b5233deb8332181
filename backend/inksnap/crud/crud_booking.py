import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.orm import Query, Session

from .. import models
from ..models.booking_status import BOOKING_TRANSITIONS, BookingStatus
from .errors import InvalidRequest, NotFoundError, PolicyError

logger = logging.getLogger(__name__)

INSERTABLE_COLUMNS = frozenset({
    "client_id",
    "artist_id",
    "requested_datetime",
    "service_description",
    "notes",
    "client_phone",
    "reference_image_url",
    "convention_date_id",
})

# target status -> column that must hold the acting identity
_ROLE_FOR_STATUS = {status: column for status, column in BOOKING_TRANSITIONS.values()}


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    raise InvalidRequest(
        "A requested date and time is required.",
        {"requested_datetime": "invalid"},
    )


def check_insert(db: Session, values: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    """Only clients create bookings, always as ``pending``."""
    if values.get("client_id", actor_id) != actor_id:
        raise PolicyError("Bookings can only be requested as yourself.", {"client_id": "forbidden"})
    artist_id = values.get("artist_id")
    artist = db.get(models.Profile, artist_id) if artist_id else None
    if artist is None or not artist.is_artist:
        raise NotFoundError("Artist not found.", {"artist_id": "not_found"})
    if artist.id == actor_id:
        raise InvalidRequest("You cannot book yourself.", {"artist_id": "self"})

    values["requested_datetime"] = _parse_datetime(values.get("requested_datetime"))

    convention_id = values.get("convention_date_id")
    if convention_id is not None:
        convention = db.get(models.ConventionDate, convention_id)
        if convention is None or convention.artist_id != artist.id:
            raise InvalidRequest(
                "Convention date does not belong to this artist.",
                {"convention_date_id": "invalid"},
            )

    values["client_id"] = actor_id
    values["status"] = BookingStatus.PENDING
    return values


def update_scope(query: Query, actor_id: str, values: Dict[str, Any]) -> Query:
    """Scope a status change to the role that owns it and to pending rows.

    An identity without that role matches nothing, so the update returns no
    rows rather than raising.
    """
    raw = values.get("status")
    try:
        target = BookingStatus(str(raw).lower())
    except ValueError:
        raise InvalidRequest(f"Unknown booking status '{raw}'.", {"status": "invalid"})
    role_column = _ROLE_FOR_STATUS.get(target)
    if role_column is None:
        raise InvalidRequest(
            "Bookings can only move from pending to a final status.",
            {"status": "invalid_transition"},
        )
    values["status"] = target
    logger.debug("Booking status -> %s scoped to %s=%s", target.value, role_column, actor_id)
    return query.filter(
        getattr(models.Booking, role_column) == actor_id,
        models.Booking.status == BookingStatus.PENDING,
    )

