"""Signed-in identity, its profile and the global unread counter."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import AuthorizationError, GatewayError, InkSnapError, ValidationError
from .gateway import Gateway
from .notifications import Notifier
from .profile import PROFILE_FIELDS, Profile, normalize_profile

logger = logging.getLogger(__name__)

PROFILE_PHOTO_FOLDER = "profile_photos"


class UnreadCounter:
    """Process-wide unread message count for the signed-in identity.

    Writes are last-write-wins: a refresh overwrites whatever local
    decrements happened while it was in flight.
    """

    def __init__(self, gateway: Gateway):
        self.gateway = gateway
        self.value = 0
        self._listeners: List[Callable[[int], None]] = []

    def listen(self, listener: Callable[[int], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def set(self, value: int) -> None:
        value = max(0, int(value))
        if value == self.value:
            return
        self.value = value
        for listener in list(self._listeners):
            listener(value)

    def decrement(self, amount: int) -> None:
        if amount > 0:
            self.set(self.value - amount)

    async def refresh(self, identity_id: Optional[str] = None) -> int:
        """Pull the authoritative total. Raises ``GatewayError``."""
        params = {"identity_id": identity_id} if identity_id else {}
        body = await self.gateway.rpc("unread_total", **params)
        self.set((body or {}).get("total", 0))
        return self.value


class SessionContext:
    def __init__(self, gateway: Gateway, notifier: Optional[Notifier] = None):
        self.gateway = gateway
        self.notifier = notifier if notifier is not None else Notifier()
        self.unread = UnreadCounter(gateway)
        self.profile: Optional[Profile] = None

    @property
    def identity_id(self) -> Optional[str]:
        return self.profile.id if self.profile else None

    @property
    def signed_in(self) -> bool:
        return self.profile is not None

    async def start(self, identity: Mapping[str, Any]) -> Profile:
        """Load the profile for ``identity`` (the provider's user payload).

        Falls back to the provider metadata when no profile row exists yet.
        A failed unread refresh is reported but does not fail sign-in.
        """
        rows = await self.gateway.select("profiles", {"id": identity["id"]}, limit=1)
        payload = dict(identity)
        if rows:
            payload["profile"] = rows[0]
        self.profile = normalize_profile(payload)
        try:
            await self.unread.refresh(self.profile.id)
        except GatewayError as exc:
            logger.warning("Could not load unread count: %s", exc.message)
            self.notifier.warning("Unread messages", "Could not load your unread count.")
        return self.profile

    def sign_out(self) -> None:
        self.profile = None
        self.unread.set(0)

    def _require(self) -> Profile:
        if self.profile is None:
            raise ValidationError("You need to be signed in.")
        return self.profile

    async def _save(self, changes: Dict[str, Any]) -> Profile:
        profile = self._require()
        if profile.persisted:
            rows = await self.gateway.update("profiles", changes, {"id": profile.id})
            if not rows:
                raise AuthorizationError("Your profile could not be updated.")
            row = rows[0]
        else:
            row = await self.gateway.insert("profiles", dict(profile.as_row(), **changes))
        self.profile = normalize_profile(row)
        return self.profile

    async def update_profile(self, changes: Mapping[str, Any]) -> Profile:
        """Save profile changes, geocoding a changed location first.

        A location that cannot be geocoded is still saved as text; its
        coordinates are cleared and a warning is shown.
        """
        profile = self._require()
        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile field(s): {', '.join(sorted(unknown))}")
        values = dict(changes)
        if "username" in values and not (values["username"] or "").strip():
            raise ValidationError("Username cannot be empty.", "username")

        if "location" in values:
            location = (values["location"] or "").strip()
            values["location"] = location or None
            if not location:
                values.update(latitude=None, longitude=None)
            elif location != (profile.location or "").strip() or not profile.has_coordinates:
                values.update(await self._geocode(location))
        return await self._save(values)

    async def _geocode(self, location: str) -> Dict[str, Optional[float]]:
        try:
            result = await self.gateway.geocode(location)
        except GatewayError as exc:
            logger.warning("Geocoding %r failed: %s", location, exc.message)
            result = None
        if not result:
            self.notifier.warning("Location saved", "Coordinates for this location could not be found.")
            return {"latitude": None, "longitude": None}
        return {"latitude": result["latitude"], "longitude": result["longitude"]}

    async def update_profile_photo(self, data: bytes, filename: str, content_type: Optional[str] = None) -> Profile:
        """Upload a new photo, save it, then remove the previous one.

        If saving fails the new upload is deleted again.
        """
        profile = self._require()
        uploaded = await self.gateway.upload(data, filename, PROFILE_PHOTO_FOLDER, content_type)
        previous = profile.profile_photo_public_id
        try:
            updated = await self._save({
                "profile_photo_url": uploaded["url"],
                "profile_photo_public_id": uploaded["public_id"],
            })
        except InkSnapError:
            await self._discard_uploads([uploaded["public_id"]])
            raise
        if previous and previous != uploaded["public_id"]:
            await self._discard_uploads([previous])
        return updated

    async def _discard_uploads(self, public_ids: List[str]) -> None:
        try:
            await self.gateway.delete_uploads(public_ids)
        except GatewayError as exc:
            logger.warning("Could not delete uploads %s: %s", public_ids, exc.message)

    async def delete_account(self) -> Dict[str, int]:
        self._require()
        counts = await self.gateway.delete_account()
        self.sign_out()
        return counts

