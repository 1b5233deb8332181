from typing import Any, Dict

from sqlalchemy.orm import Session

from .. import models
from .errors import NotFoundError, PolicyError


def check_insert(db: Session, values: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    if values.get("follower_id", actor_id) != actor_id:
        raise PolicyError("You can only follow as yourself.", {"follower_id": "forbidden"})
    following_id = values.get("following_id")
    if not following_id or db.get(models.Profile, following_id) is None:
        raise NotFoundError("Profile not found.", {"following_id": "not_found"})
    values["follower_id"] = actor_id
    return values
