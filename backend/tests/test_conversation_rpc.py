from datetime import datetime, timedelta, timezone

import pytest

from inksnap import models
from inksnap.crud import crud_rest
from inksnap.crud.crud_rpc import call_rpc
from inksnap.crud.errors import InvalidRequest, NotFoundError, PolicyError


def _seed(make_profile):
    make_profile("alice")
    make_profile("bob", is_artist=True)
    make_profile("carol", is_artist=True)


def test_start_conversation_is_canonical_and_idempotent(Session, make_profile):
    _seed(make_profile)
    db = Session()
    first = call_rpc(db, "start_or_get_conversation", "bob", {"identity_a": "bob", "identity_b": "alice"})
    assert first["created"] is True
    assert (first["participant_one_id"], first["participant_two_id"]) == ("alice", "bob")

    again = call_rpc(db, "start_or_get_conversation", "alice", {"identity_a": "alice", "identity_b": "bob"})
    assert again["id"] == first["id"]
    assert again["created"] is False
    assert db.query(models.Conversation).count() == 1
    db.close()


def test_start_conversation_rejects_outsiders_and_self(Session, make_profile):
    _seed(make_profile)
    db = Session()
    with pytest.raises(PolicyError):
        call_rpc(db, "start_or_get_conversation", "carol", {"identity_a": "alice", "identity_b": "bob"})
    with pytest.raises(InvalidRequest):
        call_rpc(db, "start_or_get_conversation", "alice", {"identity_a": "alice", "identity_b": "alice"})
    with pytest.raises(NotFoundError):
        call_rpc(db, "start_or_get_conversation", "alice", {"identity_a": "alice", "identity_b": "nobody"})
    with pytest.raises(InvalidRequest):
        call_rpc(db, "start_or_get_conversation", "alice", {"identity_a": "alice"})
    db.close()


def test_list_conversations_orders_by_activity_with_unread_counts(Session, make_profile):
    _seed(make_profile)
    db = Session()
    with_bob = call_rpc(db, "start_or_get_conversation", "alice", {"identity_a": "alice", "identity_b": "bob"})
    with_carol = call_rpc(db, "start_or_get_conversation", "alice", {"identity_a": "alice", "identity_b": "carol"})

    crud_rest.insert_row(db, "messages", "bob", {"conversation_id": with_bob["id"], "content": "one"})
    crud_rest.insert_row(db, "messages", "bob", {"conversation_id": with_bob["id"], "content": "two"})
    crud_rest.insert_row(db, "messages", "carol", {"conversation_id": with_carol["id"], "content": "latest"})
    # pin the activity times so ordering does not depend on clock resolution
    now = datetime.now(timezone.utc)
    db.get(models.Conversation, with_bob["id"]).last_message_at = now - timedelta(minutes=5)
    db.get(models.Conversation, with_carol["id"]).last_message_at = now
    db.commit()

    listed = call_rpc(db, "list_conversations_with_details", "alice", {})
    assert [c["id"] for c in listed] == [with_carol["id"], with_bob["id"]]
    assert listed[0]["other_participant"]["id"] == "carol"
    assert listed[0]["last_message_preview"] == "latest"
    assert [c["unread_count"] for c in listed] == [1, 2]

    assert call_rpc(db, "unread_total", "alice", {}) == {"total": 3}
    assert call_rpc(db, "unread_total", "bob", {}) == {"total": 0}

    crud_rest.update_rows(db, "messages", "alice", {"is_read": True}, {"conversation_id": with_bob["id"]})
    assert call_rpc(db, "unread_total", "alice", {}) == {"total": 1}
    db.close()


def test_conversation_reads_are_limited_to_own_identity(Session, make_profile):
    _seed(make_profile)
    db = Session()
    with pytest.raises(PolicyError):
        call_rpc(db, "list_conversations_with_details", "alice", {"identity_id": "bob"})
    with pytest.raises(PolicyError):
        call_rpc(db, "unread_total", "alice", {"identity_id": "bob"})
    with pytest.raises(NotFoundError):
        call_rpc(db, "drop_everything", "alice", {})
    db.close()


def test_search_artists_ranks_by_distance_then_rating(Session, make_profile):
    make_profile("alice")
    make_profile("near", is_artist=True, location="Berlin", latitude=52.52, longitude=13.40, bio="blackwork")
    make_profile("far", is_artist=True, location="Munich", latitude=48.14, longitude=11.58, bio="blackwork")
    make_profile("nowhere", is_artist=True, bio="blackwork fineline")
    make_profile("other", is_artist=True, location="Berlin", latitude=52.5, longitude=13.4, bio="watercolor")

    db = Session()
    results = call_rpc(
        db, "search_artists", "alice", {"keyword": "blackwork", "latitude": 52.5, "longitude": 13.4}
    )
    assert [r["id"] for r in results] == ["near", "far", "nowhere"]
    assert results[0]["distance_km"] < results[1]["distance_km"]
    assert results[2]["distance_km"] is None

    by_text = call_rpc(db, "search_artists", "alice", {"location_text": "berlin"})
    assert {r["id"] for r in by_text} == {"near", "other"}

    with pytest.raises(InvalidRequest):
        call_rpc(db, "search_artists", "alice", {"limit": 0})
    db.close()
