"""Booking requests as a small state machine.

``pending`` moves to exactly one of ``confirmed``, ``declined_by_artist``
(artist actions) or ``cancelled_by_client`` (client action). Updates are
scoped on the server to the acting role and to pending rows, so an update
that comes back empty means the caller was not allowed to make it.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from ..models.booking_status import BOOKING_TRANSITIONS, BookingAction, BookingStatus
from ..schemas.booking import BookingRead
from ..schemas.profile import ProfileRead
from ..services.distance import distance_between
from .channel import Attachment
from .component import Component, LoadState
from .errors import AuthorizationError, GatewayError, InkSnapError, ValidationError
from .gateway import Gateway
from .notifications import Notifier

logger = logging.getLogger(__name__)

REFERENCE_IMAGE_FOLDER = "booking_references"

# Actions each role may take on a pending booking.
ARTIST_ACTIONS = (BookingAction.CONFIRM, BookingAction.DECLINE)
CLIENT_ACTIONS = (BookingAction.CANCEL,)


def available_actions(booking: BookingRead, identity_id: str) -> tuple:
    if not booking.is_pending:
        return ()
    if booking.artist_id == identity_id:
        return ARTIST_ACTIONS
    if booking.client_id == identity_id:
        return CLIENT_ACTIONS
    return ()


class BookingTracker:
    """Booking list state shared by the artist queue and the client list."""

    def __init__(self, gateway: Gateway):
        self.gateway = gateway
        self.bookings: List[BookingRead] = []

    async def _list(self, column: str, identity_id: str, embed) -> List[BookingRead]:
        rows = await self.gateway.select(
            "bookings",
            {column: identity_id},
            order="created_at",
            descending=True,
            embed=embed,
        )
        self.bookings = [BookingRead.model_validate(row) for row in rows]
        return self.bookings

    async def list_for_artist(self, artist_id: str) -> List[BookingRead]:
        """Newest first, ties broken by id. Raises ``GatewayError``."""
        return await self._list("artist_id", artist_id, ("client", "convention_date"))

    async def list_for_client(self, client_id: str) -> List[BookingRead]:
        return await self._list("client_id", client_id, ("artist", "convention_date"))

    def get(self, booking_id: int) -> Optional[BookingRead]:
        for booking in self.bookings:
            if booking.id == booking_id:
                return booking
        return None

    async def create(
        self,
        client_id: str,
        artist_id: str,
        requested_datetime: Union[datetime, str, None],
        service_description: Optional[str] = None,
        notes: Optional[str] = None,
        client_phone: Optional[str] = None,
        convention_date_id: Optional[int] = None,
        reference_image: Optional[Attachment] = None,
    ) -> BookingRead:
        """Request a booking. The reference image is uploaded first.

        Raises ``ValidationError`` without a date and time, ``UploadError``
        when the image cannot be stored (nothing is created), and
        ``GatewayError`` when the insert is refused (the image is removed).
        """
        if not requested_datetime:
            raise ValidationError("Please select a date and time for your booking.", "requested_datetime")
        if client_id == artist_id:
            raise ValidationError("You cannot book yourself.", "artist_id")

        uploaded: Optional[Dict[str, str]] = None
        if reference_image is not None:
            uploaded = await self.gateway.upload(
                reference_image.data,
                reference_image.filename,
                REFERENCE_IMAGE_FOLDER,
                reference_image.content_type,
            )
        values: Dict[str, Any] = {
            "client_id": client_id,
            "artist_id": artist_id,
            "requested_datetime": requested_datetime,
            "service_description": (service_description or "").strip() or None,
            "notes": (notes or "").strip() or None,
            "client_phone": (client_phone or "").strip() or None,
            "reference_image_url": uploaded["url"] if uploaded else None,
        }
        if convention_date_id is not None:
            values["convention_date_id"] = convention_date_id
        try:
            row = await self.gateway.insert("bookings", values)
        except InkSnapError:
            if uploaded:
                try:
                    await self.gateway.delete_uploads([uploaded["public_id"]])
                except GatewayError as exc:
                    logger.warning("Orphaned reference image %s: %s", uploaded["public_id"], exc.message)
            raise
        booking = BookingRead.model_validate(row)
        self.bookings.insert(0, booking)
        return booking

    async def transition(
        self,
        booking_id: int,
        action: Union[BookingAction, str],
        actor_id: str,
    ) -> BookingRead:
        try:
            action = BookingAction(str(getattr(action, "value", action)).lower())
        except ValueError:
            raise ValidationError(f"Unknown booking action '{action}'.", "action")
        target, role_column = BOOKING_TRANSITIONS[action]

        local = self.get(booking_id)
        if local is not None and not local.is_pending:
            raise ValidationError("Only pending bookings can be changed.", "status")

        rows = await self.gateway.update(
            "bookings",
            {"status": target.value},
            {"id": booking_id, role_column: actor_id, "status": BookingStatus.PENDING.value},
        )
        if not rows:
            raise AuthorizationError("You are not allowed to change this booking.")
        updated = BookingRead.model_validate(rows[0])
        if local is not None:
            # Keep embedded cards; the update response carries the bare row.
            updated = updated.model_copy(update={
                "client": local.client,
                "artist": local.artist,
                "convention_date": local.convention_date,
            })
            self.bookings[self.bookings.index(local)] = updated
        return updated


class _BookingList(Component, abc.ABC):
    title = "bookings"

    def __init__(self, gateway: Gateway, identity_id: str, notifier: Optional[Notifier] = None):
        super().__init__(gateway, notifier)
        self.identity_id = identity_id
        self.tracker = BookingTracker(gateway)

    @property
    def bookings(self) -> List[BookingRead]:
        return self.tracker.bookings

    @abc.abstractmethod
    async def _fetch(self) -> List[BookingRead]:
        ...

    async def load(self) -> List[BookingRead]:
        self.state = LoadState.LOADING
        try:
            bookings = await self._fetch()
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.error = exc.message
                self.report(f"Error fetching {self.title}", exc)
            return []
        if self.mounted:
            self.state = LoadState.READY
            self.error = None
        return bookings

    def actions_for(self, booking: BookingRead) -> tuple:
        return available_actions(booking, self.identity_id)

    async def act(self, booking_id: int, action: Union[BookingAction, str]) -> Optional[BookingRead]:
        try:
            updated = await self.tracker.transition(booking_id, action, self.identity_id)
        except InkSnapError as exc:
            self.report("Booking not updated", exc)
            return None
        if self.mounted:
            self.notifier.success("Booking updated", f"Status is now {updated.status.value.replace('_', ' ')}.")
        return updated


class ArtistBookingQueue(_BookingList):
    title = "booking requests"

    async def _fetch(self) -> List[BookingRead]:
        return await self.tracker.list_for_artist(self.identity_id)

    @property
    def pending(self) -> List[BookingRead]:
        return [b for b in self.bookings if b.is_pending]


class ClientBookingList(_BookingList):
    title = "your bookings"

    async def _fetch(self) -> List[BookingRead]:
        return await self.tracker.list_for_client(self.identity_id)

    async def request(self, artist_id: str, requested_datetime, **details) -> Optional[BookingRead]:
        """Booking request form submit."""
        try:
            booking = await self.tracker.create(self.identity_id, artist_id, requested_datetime, **details)
        except InkSnapError as exc:
            self.report("Booking request failed", exc)
            return None
        if self.mounted:
            self.notifier.success("Booking requested", "The artist will review your request.")
        return booking


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class BookingSummary(Component):
    """Chat side panel: booking history with the other participant.

    ``upcoming`` holds bookings requested for now or later, soonest first;
    ``past`` holds the rest, most recent first. ``distance_km`` is set when
    both profiles carry coordinates.
    """

    def __init__(
        self,
        gateway: Gateway,
        identity_id: str,
        other_id: str,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(gateway, notifier)
        self.identity_id = identity_id
        self.other_id = other_id
        self._clock = clock
        self.bookings: List[BookingRead] = []
        self.upcoming: List[BookingRead] = []
        self.past: List[BookingRead] = []
        self.other: Optional[ProfileRead] = None
        self.distance_km: Optional[float] = None

    @property
    def booking(self) -> Optional[BookingRead]:
        """The most recently created booking, if any."""
        return self.bookings[0] if self.bookings else None

    async def _between(self, client_id: str, artist_id: str) -> List[Dict[str, Any]]:
        return await self.gateway.select(
            "bookings",
            {"client_id": client_id, "artist_id": artist_id},
            order="created_at",
            descending=True,
            embed=("convention_date",),
        )

    async def _profile(self, profile_id: str) -> Optional[ProfileRead]:
        rows = await self.gateway.select("profiles", {"id": profile_id}, limit=1)
        return ProfileRead.model_validate(rows[0]) if rows else None

    async def load(self) -> List[BookingRead]:
        self.state = LoadState.LOADING
        try:
            as_client, as_artist, me, other = await asyncio.gather(
                self._between(self.identity_id, self.other_id),
                self._between(self.other_id, self.identity_id),
                self._profile(self.identity_id),
                self._profile(self.other_id),
            )
        except InkSnapError as exc:
            if self.mounted:
                self.state = LoadState.ERROR
                self.error = exc.message
                self.report("Could not load booking details", exc)
            return []
        if not self.mounted:
            return []

        bookings = [BookingRead.model_validate(row) for row in as_client + as_artist]
        bookings.sort(key=lambda b: (_as_utc(b.created_at or _EPOCH), b.id), reverse=True)
        now = _as_utc(self._clock())
        self.bookings = bookings
        self.upcoming = sorted(
            (b for b in bookings if _as_utc(b.requested_datetime) >= now),
            key=lambda b: _as_utc(b.requested_datetime),
        )
        self.past = sorted(
            (b for b in bookings if _as_utc(b.requested_datetime) < now),
            key=lambda b: _as_utc(b.requested_datetime),
            reverse=True,
        )
        self.other = other
        self.distance_km = distance_between(me, other) if me and other else None
        self.state = LoadState.READY
        self.error = None
        return self.bookings
