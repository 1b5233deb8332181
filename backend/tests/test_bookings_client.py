import asyncio
import os
from datetime import datetime, timedelta

import pytest

from inksnap import models
from inksnap.client.bookings import (
    ARTIST_ACTIONS,
    CLIENT_ACTIONS,
    ArtistBookingQueue,
    BookingSummary,
    BookingTracker,
    ClientBookingList,
    _BookingList,
)
from inksnap.client.channel import Attachment
from inksnap.client.errors import AuthorizationError, GatewayError, UploadError, ValidationError
from inksnap.client.notifications import Notifier, Variant
from inksnap.models.booking_status import BookingAction, BookingStatus

PNG = b"\x89PNG\r\n\x1a\n" + b"4" * 32
WHEN = datetime(2030, 6, 1, 15, 30)


@pytest.fixture
def people(make_profile):
    make_profile("alice", email="alice@example.com")
    make_profile("bob", is_artist=True)
    make_profile("carol")


def _files(upload_dir):
    return [f for _, _, files in os.walk(str(upload_dir)) for f in files]


def test_request_then_artist_confirms(people, gateway_for, local_storage):
    client_list = ClientBookingList(gateway_for("alice"), "alice")
    queue = ArtistBookingQueue(gateway_for("bob"), "bob")

    async def run():
        booking = await client_list.request(
            "bob",
            WHEN,
            service_description="Rose on forearm",
            reference_image=Attachment(PNG, "rose.png", "image/png"),
        )
        await queue.load()
        confirmed = await queue.act(booking.id, BookingAction.CONFIRM)
        return booking, confirmed

    booking, confirmed = asyncio.run(run())
    assert booking.status == BookingStatus.PENDING
    assert booking.client_id == "alice"
    assert "/booking_references/" in booking.reference_image_url
    assert len(_files(local_storage)) == 1

    assert confirmed.status == BookingStatus.CONFIRMED
    assert queue.bookings[0].status == BookingStatus.CONFIRMED
    assert queue.bookings[0].client.email == "alice@example.com"
    assert queue.pending == []


def test_terminal_bookings_cannot_change_again(people, gateway_for):
    client_gw, artist_gw = gateway_for("alice"), gateway_for("bob")
    client_tracker, artist_tracker = BookingTracker(client_gw), BookingTracker(artist_gw)

    async def run():
        booking = await client_tracker.create("alice", "bob", WHEN)
        await artist_tracker.list_for_artist("bob")
        declined = await artist_tracker.transition(booking.id, "decline", "bob")
        assert declined.status == BookingStatus.DECLINED_BY_ARTIST
        # the client's list is stale and still shows pending
        with pytest.raises(AuthorizationError):
            await client_tracker.transition(booking.id, "cancel", "alice")
        with pytest.raises(ValidationError):
            await artist_tracker.transition(booking.id, "confirm", "bob")
        return booking

    booking = asyncio.run(run())
    assert booking.id is not None


def test_roles_are_enforced(people, gateway_for, Session):
    client_tracker = BookingTracker(gateway_for("alice"))
    stranger = BookingTracker(gateway_for("carol"))

    async def run():
        booking = await client_tracker.create("alice", "bob", WHEN.isoformat())
        with pytest.raises(AuthorizationError):
            await client_tracker.transition(booking.id, BookingAction.CONFIRM, "alice")
        with pytest.raises(AuthorizationError):
            await stranger.transition(booking.id, "cancel", "carol")
        with pytest.raises(ValidationError):
            await client_tracker.transition(booking.id, "archive", "alice")
        cancelled = await client_tracker.transition(booking.id, "CANCEL", "alice")
        return cancelled

    cancelled = asyncio.run(run())
    assert cancelled.status == BookingStatus.CANCELLED_BY_CLIENT
    assert client_tracker.bookings[0].status == BookingStatus.CANCELLED_BY_CLIENT
    db = Session()
    assert db.query(models.Booking).one().status == BookingStatus.CANCELLED_BY_CLIENT
    db.close()


def test_create_validates_before_uploading(people, gateway_for, local_storage, Session):
    tracker = BookingTracker(gateway_for("alice"))

    async def run():
        with pytest.raises(ValidationError) as excinfo:
            await tracker.create("alice", "bob", None, reference_image=Attachment(PNG, "a.png", "image/png"))
        assert excinfo.value.field == "requested_datetime"
        with pytest.raises(ValidationError):
            await tracker.create("bob", "bob", WHEN)
        with pytest.raises(UploadError):
            await tracker.create("alice", "bob", WHEN, reference_image=Attachment(b"x", "a.txt", "text/plain"))

    asyncio.run(run())
    assert _files(local_storage) == []
    db = Session()
    assert db.query(models.Booking).count() == 0
    db.close()


def test_refused_insert_removes_reference_image(people, gateway_for, local_storage):
    tracker = BookingTracker(gateway_for("alice"))

    async def run():
        with pytest.raises(GatewayError) as excinfo:
            # carol is not an artist
            await tracker.create("alice", "carol", WHEN, reference_image=Attachment(PNG, "a.png", "image/png"))
        return excinfo.value

    err = asyncio.run(run())
    assert err.status_code == 404
    assert _files(local_storage) == []
    assert tracker.bookings == []


def test_lists_are_newest_first_with_embeds(people, gateway_for, Session):
    client_gw = gateway_for("alice")
    tracker = BookingTracker(client_gw)

    async def run():
        first = await tracker.create("alice", "bob", WHEN)
        second = await tracker.create("alice", "bob", WHEN + timedelta(days=1))
        db = Session()
        db.get(models.Booking, first.id).created_at = WHEN - timedelta(days=2)
        db.get(models.Booking, second.id).created_at = WHEN - timedelta(days=1)
        db.commit()
        db.close()
        listed = await BookingTracker(client_gw).list_for_client("alice")
        return first, second, listed

    first, second, listed = asyncio.run(run())
    assert [b.id for b in listed] == [second.id, first.id]
    assert listed[0].artist.id == "bob"
    assert listed[0].client is None


def test_failures_become_notifications(people, gateway_for):
    notifier = Notifier()
    client_list = ClientBookingList(gateway_for("alice"), "alice", notifier)

    async def run():
        assert await client_list.request("bob", "") is None
        booking = await client_list.request("bob", WHEN)
        assert await client_list.act(booking.id, "confirm") is None
        return booking

    booking = asyncio.run(run())
    variants = [n.variant for n in notifier.active()]
    assert variants == [Variant.ERROR, Variant.SUCCESS, Variant.ERROR]
    assert client_list.actions_for(booking) == CLIENT_ACTIONS
    assert ArtistBookingQueue(gateway_for("bob"), "bob").actions_for(booking) == ARTIST_ACTIONS
    assert ArtistBookingQueue(gateway_for("carol"), "carol").actions_for(booking) == ()


def test_booking_summary_splits_history_around_now(make_profile, gateway_for):
    make_profile("alice", location="Berlin", latitude=52.52, longitude=13.40)
    make_profile("bob", is_artist=True, location="Hamburg", latitude=53.55, longitude=9.99)
    make_profile("carol")

    async def run():
        tracker = BookingTracker(gateway_for("alice"))
        later = await tracker.create("alice", "bob", WHEN + timedelta(days=7))
        earlier = await tracker.create("alice", "bob", WHEN - timedelta(days=3))
        soon = await tracker.create("alice", "bob", WHEN + timedelta(days=1))
        summary = BookingSummary(gateway_for("bob"), "bob", "alice", clock=lambda: WHEN)
        unrelated = BookingSummary(gateway_for("carol"), "carol", "bob", clock=lambda: WHEN)
        await summary.load()
        await unrelated.load()
        return (later, earlier, soon), summary, unrelated

    (later, earlier, soon), summary, unrelated = asyncio.run(run())
    assert [b.id for b in summary.upcoming] == [soon.id, later.id]
    assert [b.id for b in summary.past] == [earlier.id]
    assert len(summary.bookings) == 3
    assert summary.booking.id == soon.id
    assert summary.other.location == "Berlin"
    assert 250 < summary.distance_km < 260

    assert unrelated.bookings == []
    assert unrelated.upcoming == [] and unrelated.past == []
    assert unrelated.booking is None
    assert unrelated.distance_km is None


def test_listing_twice_returns_the_same_order(people, gateway_for):
    gateway = gateway_for("bob")

    async def run():
        client_tracker = BookingTracker(gateway_for("alice"))
        for day in range(3):
            await client_tracker.create("alice", "bob", WHEN + timedelta(days=day))
        tracker = BookingTracker(gateway)
        first = [b.id for b in await tracker.list_for_artist("bob")]
        second = [b.id for b in await tracker.list_for_artist("bob")]
        return first, second

    first, second = asyncio.run(run())
    assert len(first) == 3
    assert first == second


def test_booking_list_base_needs_a_fetch(people, gateway_for):
    with pytest.raises(TypeError):
        _BookingList(gateway_for("alice"), "alice")
