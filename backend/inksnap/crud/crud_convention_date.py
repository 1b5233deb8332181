from datetime import date
from typing import Any, Dict

from sqlalchemy.orm import Session

from .. import models
from .errors import InvalidRequest, PolicyError

WRITABLE_COLUMNS = frozenset({"event_name", "location", "start_date", "end_date"})


def _parse_date(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise InvalidRequest("Dates must be YYYY-MM-DD.", {field: "invalid"})


def check_insert(db: Session, values: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    if values.get("artist_id", actor_id) != actor_id:
        raise PolicyError("Convention dates can only be added to your own profile.", {"artist_id": "forbidden"})
    artist = db.get(models.Profile, actor_id)
    if artist is None or not artist.is_artist:
        raise PolicyError("Only artists can list convention dates.", {"artist_id": "not_artist"})
    if not (values.get("event_name") or "").strip():
        raise InvalidRequest("Event name is required.", {"event_name": "required"})
    start = _parse_date(values.get("start_date"), "start_date")
    if start is None:
        raise InvalidRequest("Start date is required.", {"start_date": "required"})
    end = _parse_date(values.get("end_date"), "end_date")
    if end is not None and end < start:
        raise InvalidRequest("End date must not precede the start date.", {"end_date": "before_start"})
    values.update(artist_id=actor_id, start_date=start, end_date=end)
    return values
