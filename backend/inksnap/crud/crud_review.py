from typing import Any, Dict

from sqlalchemy.orm import Session

from .. import models
from .errors import ConflictError, InvalidRequest, NotFoundError, PolicyError


def check_insert(db: Session, values: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    if values.get("reviewer_id", actor_id) != actor_id:
        raise PolicyError("Reviews can only be written as yourself.", {"reviewer_id": "forbidden"})
    artist_id = values.get("artist_id")
    artist = db.get(models.Profile, artist_id) if artist_id else None
    if artist is None or not artist.is_artist:
        raise NotFoundError("Artist not found.", {"artist_id": "not_found"})
    if artist.id == actor_id:
        raise InvalidRequest("You cannot review yourself.", {"artist_id": "self"})

    try:
        stars = int(values.get("stars"))
    except (TypeError, ValueError):
        stars = 0
    if not 1 <= stars <= 5:
        raise InvalidRequest("Rating must be between 1 and 5 stars.", {"stars": "out_of_range"})

    existing = (
        db.query(models.Review.id)
        .filter(models.Review.reviewer_id == actor_id, models.Review.artist_id == artist.id)
        .first()
    )
    if existing:
        raise ConflictError("You can only leave one review per artist.", {"artist_id": "review_exists"})

    values.update(reviewer_id=actor_id, stars=stars)
    return values
