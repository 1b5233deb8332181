import asyncio

import pytest

from inksnap import models
from inksnap.client.artist_profile import ArtistProfileLoader
from inksnap.client.component import LoadState
from inksnap.client.errors import ValidationError
from inksnap.client.follows import FollowTracker
from inksnap.client.notifications import Notifier, Variant
from inksnap.client.reviews import ReviewComposer
from inksnap.client.session import SessionContext


@pytest.fixture
def people(make_profile):
    make_profile("alice", name="Alice A")
    make_profile("bob", is_artist=True, username="bobink")
    make_profile("carol")


def _session(gateway, identity):
    session = SessionContext(gateway)
    asyncio.run(session.start({"id": identity}))
    return session


def test_one_review_per_artist(people, gateway_for, Session):
    notifier = Notifier()
    composer = ReviewComposer(_session(gateway_for("alice"), "alice"), notifier)

    async def run():
        first = await composer.submit("bob", 5, "  Amazing linework  ")
        second = await composer.submit("bob", 1, "Second thoughts")
        return first, second

    first, second = asyncio.run(run())
    assert first.comment == "Amazing linework"
    assert first.reviewer.name == "Alice A"
    assert second is None
    assert [n.variant for n in notifier.active()] == [Variant.SUCCESS, Variant.ERROR]
    db = Session()
    assert db.query(models.Review).filter_by(reviewer_id="alice", artist_id="bob").count() == 1
    db.close()


def test_review_checks(people, gateway_for):
    composer = ReviewComposer(_session(gateway_for("bob"), "bob"))
    signed_out = ReviewComposer(SessionContext(gateway_for("carol")))

    async def run():
        with pytest.raises(ValidationError):
            await composer.check("bob", 5, "Me, myself")
        with pytest.raises(ValidationError):
            await composer.check("alice", 0, "Zero")
        with pytest.raises(ValidationError):
            await composer.check("alice", 3, "   ")
        with pytest.raises(ValidationError):
            await composer.check("alice", 3, "x" * 2001)
        with pytest.raises(ValidationError):
            await signed_out.check("bob", 5, "Nice")
        assert await composer.check("alice", 3, " ok ") == "ok"

    asyncio.run(run())


def test_follow_and_unfollow(people, gateway_for):
    tracker = FollowTracker(gateway_for("alice"), "bob", viewer_id="alice")
    other_viewer = FollowTracker(gateway_for("carol"), "bob", viewer_id="carol")

    async def run():
        await tracker.load()
        assert (tracker.follower_count, tracker.is_following) == (0, False)
        assert await tracker.toggle() is True
        assert tracker.follower_count == 1
        await other_viewer.load()
        assert (other_viewer.follower_count, other_viewer.is_following) == (1, False)
        assert await tracker.toggle() is False
        assert tracker.follower_count == 0

    asyncio.run(run())


def test_follow_conflict_resyncs(people, gateway_for):
    gateway = gateway_for("alice")
    first = FollowTracker(gateway, "bob", viewer_id="alice")
    stale = FollowTracker(gateway, "bob", viewer_id="alice")

    async def run():
        await stale.load()
        await first.follow()
        # another tab already followed; the conflict triggers a reload
        assert await stale.follow() is True
        return stale

    stale = asyncio.run(run())
    assert stale.is_following is True
    assert stale.follower_count == 1


def test_self_follow_and_signed_out_follow_are_refused(people, gateway_for):
    notifier = Notifier()
    own = FollowTracker(gateway_for("bob"), "bob", viewer_id="bob", notifier=notifier)
    anon = FollowTracker(gateway_for("bob"), "bob", notifier=notifier)

    async def run():
        assert await own.follow() is False
        assert await anon.follow() is False

    asyncio.run(run())
    assert [n.title for n in notifier.active()] == ["Could not follow", "Could not follow"]
    assert own.follower_count == 0


def test_artist_profile_loads_everything(people, gateway_for):
    alice = gateway_for("alice")
    bob = gateway_for("bob")

    async def run():
        await bob.insert("convention_dates", {"event_name": "Late Expo", "start_date": "2030-09-01"})
        await bob.insert("convention_dates", {"event_name": "Early Expo", "start_date": "2030-03-01"})
        await alice.insert("reviews", {"artist_id": "bob", "stars": 4, "comment": "Great"})
        await alice.insert("follows", {"following_id": "bob"})
        loader = ArtistProfileLoader(alice, viewer_id="alice")
        return await loader.load("bobink"), loader

    data, loader = asyncio.run(run())
    assert loader.state == LoadState.READY
    assert data.artist.id == "bob"
    assert data.follower_count == 1
    assert data.is_following is True
    assert data.average_rating == 4.0
    assert data.reviews[0].reviewer.id == "alice"
    assert [c.event_name for c in data.convention_dates] == ["Early Expo", "Late Expo"]


def test_unknown_or_non_artist_username(people, gateway_for):
    notifier = Notifier()
    loader = ArtistProfileLoader(gateway_for("alice"), notifier=notifier)

    assert asyncio.run(loader.load("carol")) is None
    assert loader.state == LoadState.ERROR
    assert notifier.active()[0].title == "Artist Not Found"


def test_results_after_unmount_are_discarded(people, gateway_for):
    loader = ArtistProfileLoader(gateway_for("alice"))
    loader.unmount()
    assert asyncio.run(loader.load("bobink")) is None
    assert loader.data is None
