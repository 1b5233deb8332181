"""Canonical profile shape for the signed-in identity."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

PROFILE_FIELDS = (
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
)


@dataclass
class Profile:
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    profile_photo_url: Optional[str] = None
    profile_photo_public_id: Optional[str] = None
    is_artist: bool = False
    bio: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    studio_name: Optional[str] = None
    styles: List[str] = field(default_factory=list)
    # False until a row exists in ``profiles``; metadata-only profiles are
    # inserted rather than updated on first save.
    persisted: bool = False

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def as_row(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("persisted")
        return data


def _pick(sources, key: str) -> Any:
    for source in sources:
        value = source.get(key)
        if value is not None:
            return value
    return None


def normalize_profile(raw: Mapping[str, Any]) -> Profile:
    """Build a ``Profile`` from any of the payload shapes seen at sign-in.

    Accepts a flat ``profiles`` row, an identity payload carrying the row
    under ``profile``, or a bare identity with only provider
    ``user_metadata``. The nested row wins over top-level values, which win over
    metadata.
    """
    if not raw or not raw.get("id"):
        raise ValueError("profile payload has no id")
    nested = raw.get("profile") or {}
    metadata = raw.get("user_metadata") or {}
    # Only profile rows carry is_artist; identity payloads never do.
    persisted = bool(nested) or "is_artist" in raw
    sources = [nested, raw, metadata]

    values: Dict[str, Any] = {name: _pick(sources, name) for name in PROFILE_FIELDS}
    if values["name"] is None:
        values["name"] = metadata.get("full_name")
    values["is_artist"] = bool(values["is_artist"])
    styles = values["styles"]
    if isinstance(styles, str):
        styles = [s.strip() for s in styles.split(",") if s.strip()]
    values["styles"] = list(styles or [])
    for coord in ("latitude", "longitude"):
        if values[coord] is not None:
            values[coord] = float(values[coord])
    return Profile(id=str(nested.get("id") or raw["id"]), persisted=persisted, **values)
