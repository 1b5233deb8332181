import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models
from ..services.distance import haversine_km
from .errors import InvalidRequest, NotFoundError, PolicyError

logger = logging.getLogger(__name__)

WRITABLE_COLUMNS = frozenset({
    "name",
    "username",
    "email",
    "profile_photo_url",
    "profile_photo_public_id",
    "is_artist",
    "bio",
    "location",
    "latitude",
    "longitude",
    "studio_name",
    "styles",
    "last_active",
})


def get_profile(db: Session, profile_id: str) -> Optional[models.Profile]:
    return db.get(models.Profile, profile_id)


def require_profile(db: Session, profile_id: str, field: str) -> models.Profile:
    profile = get_profile(db, profile_id) if profile_id else None
    if profile is None:
        raise NotFoundError("Profile not found.", {field: "not_found"})
    return profile


def check_insert(db: Session, values: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    """A profile row may only be created for the acting identity."""
    if values.get("id", actor_id) != actor_id:
        raise PolicyError("You can only create your own profile.", {"id": "forbidden"})
    values["id"] = actor_id
    if get_profile(db, actor_id) is not None:
        raise InvalidRequest("Profile already exists.", {"id": "exists"})
    return values


def delete_account(db: Session, profile_id: str) -> Dict[str, int]:
    """Remove the profile and every row it owns.

    Returns per-table deletion counts. Conversations are removed together with
    their messages, for both participants.
    """
    require_profile(db, profile_id, "id")
    counts: Dict[str, int] = {}

    conversation_ids = [
        row.id
        for row in db.query(models.Conversation.id).filter(
            or_(
                models.Conversation.participant_one_id == profile_id,
                models.Conversation.participant_two_id == profile_id,
            )
        )
    ]
    counts["messages"] = (
        db.query(models.Message)
        .filter(
            or_(
                models.Message.conversation_id.in_(conversation_ids),
                models.Message.sender_id == profile_id,
                models.Message.receiver_id == profile_id,
            )
        )
        .delete(synchronize_session=False)
    )
    counts["conversations"] = (
        db.query(models.Conversation)
        .filter(models.Conversation.id.in_(conversation_ids))
        .delete(synchronize_session=False)
    )
    counts["bookings"] = (
        db.query(models.Booking)
        .filter(or_(models.Booking.client_id == profile_id, models.Booking.artist_id == profile_id))
        .delete(synchronize_session=False)
    )
    counts["reviews"] = (
        db.query(models.Review)
        .filter(or_(models.Review.reviewer_id == profile_id, models.Review.artist_id == profile_id))
        .delete(synchronize_session=False)
    )
    counts["follows"] = (
        db.query(models.Follow)
        .filter(or_(models.Follow.follower_id == profile_id, models.Follow.following_id == profile_id))
        .delete(synchronize_session=False)
    )
    counts["convention_dates"] = (
        db.query(models.ConventionDate)
        .filter(models.ConventionDate.artist_id == profile_id)
        .delete(synchronize_session=False)
    )
    counts["profiles"] = (
        db.query(models.Profile)
        .filter(models.Profile.id == profile_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Deleted account %s: %s", profile_id, counts)
    return counts


def search_artists(
    db: Session,
    keyword: str | None = None,
    lat: float | None = None,
    lon: float | None = None,
    location_text: str | None = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Rank artists by keyword match, then by distance when coordinates are known.

    Without coordinates the location text is matched against the profile's
    location instead, so a failed geocode still narrows results.
    """
    query = db.query(models.Profile).filter(models.Profile.is_artist.is_(True))
    term = (keyword or "").strip().lower()
    if term:
        like = f"%{term}%"
        query = query.filter(
            or_(
                func.lower(models.Profile.name).like(like),
                func.lower(models.Profile.username).like(like),
                func.lower(models.Profile.bio).like(like),
                func.lower(models.Profile.studio_name).like(like),
            )
        )
    use_distance = lat is not None and lon is not None
    place = (location_text or "").strip().lower()
    if not use_distance and place:
        query = query.filter(func.lower(models.Profile.location).like(f"%{place}%"))

    rating_rows = (
        db.query(
            models.Review.artist_id,
            func.avg(models.Review.stars),
            func.count(models.Review.id),
        )
        .group_by(models.Review.artist_id)
        .all()
    )
    ratings = {artist_id: (float(avg or 0), int(n)) for artist_id, avg, n in rating_rows}

    results: List[Dict[str, Any]] = []
    for profile in query.all():
        avg, n = ratings.get(profile.id, (0.0, 0))
        distance = None
        if use_distance and profile.latitude is not None and profile.longitude is not None:
            distance = round(haversine_km(lat, lon, profile.latitude, profile.longitude), 2)
        results.append({
            "id": profile.id,
            "name": profile.name,
            "username": profile.username,
            "profile_photo_url": profile.profile_photo_url,
            "location": profile.location,
            "studio_name": profile.studio_name,
            "styles": profile.styles or [],
            "average_rating": round(avg, 2),
            "review_count": n,
            "distance_km": distance,
        })

    def rank(item: Dict[str, Any]):
        distance = item["distance_km"]
        return (
            distance is None,
            distance if distance is not None else 0.0,
            -item["average_rating"],
            (item["username"] or "").lower(),
        )

    results.sort(key=rank)
    return results[: max(1, min(limit, 200))]
