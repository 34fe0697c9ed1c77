import string

import pytest

from backend import RoomBackend, TimerSet, TokenRegistry, generate_access_id
from errors import InsufficientAccess, InvalidToken, RoomNotFound, TimerAlreadyExists, TimerNotFound
from schemas.messages import AccessLevel


def test_generate_access_id_uses_alphabet_and_length():
    access_id = generate_access_id(16, "abc")
    assert len(access_id) == 16
    assert set(access_id) <= set("abc")


def test_default_access_ids_are_alphanumeric():
    access_id = generate_access_id()
    assert access_id
    assert set(access_id) <= set(string.ascii_letters + string.digits)


def test_token_registry_retries_on_collision():
    values = iter(["dup", "dup", "dup", "fresh"])
    tokens = TokenRegistry(generator=lambda: next(values))

    assert tokens.issue("room-a") == "dup"
    assert tokens.issue("room-b") == "fresh"
    assert tokens.resolve("dup") == "room-a"
    assert tokens.resolve("fresh") == "room-b"


def test_token_registry_revoke_is_idempotent():
    tokens = TokenRegistry()
    access_id = tokens.issue("room-a")
    tokens.revoke(access_id)
    tokens.revoke(access_id)
    assert tokens.resolve(access_id) is None
    assert len(tokens) == 0


def test_create_room_issues_two_distinct_tokens(backend):
    room_id, room = backend.rooms.create()

    assert room.edit_access_id != room.view_access_id
    assert backend.tokens.resolve(room.edit_access_id) == room_id
    assert backend.tokens.resolve(room.view_access_id) == room_id
    assert len(backend.tokens) == 2
    assert room.subscribers == set()
    assert len(room.timers) == 0


def test_create_room_records_creation_time(backend, clock):
    room = backend.create_room()
    assert room.last_activity == clock.now


def test_destroy_revokes_tokens_and_is_idempotent(backend):
    room = backend.create_room()

    assert backend.rooms.destroy(room.room_id) is room
    assert backend.rooms.destroy(room.room_id) is None
    assert backend.rooms.get(room.room_id) is None
    assert room.edit_access_id not in backend.tokens
    assert room.view_access_id not in backend.tokens


def test_resolver_rejects_unknown_token(backend):
    with pytest.raises(InvalidToken):
        backend.access.resolve("missing")


def test_resolver_reports_room_missing_for_orphaned_token(backend):
    orphan = backend.tokens.issue("no-such-room")
    with pytest.raises(RoomNotFound):
        backend.access.resolve(orphan)


def test_resolver_enforces_edit_tier(backend, clock):
    room = backend.create_room()
    created_at = room.last_activity
    clock.advance(5)

    with pytest.raises(InsufficientAccess):
        backend.access.resolve(room.view_access_id, require_edit=True)
    assert room.last_activity == created_at

    assert backend.access.resolve(room.edit_access_id, require_edit=True) is room
    assert room.last_activity == created_at + 5


def test_resolver_never_moves_activity_backwards(backend, clock):
    room = backend.create_room()
    clock.advance(10)
    backend.access.resolve(room.view_access_id)
    clock.now -= 50
    backend.access.resolve(room.view_access_id)
    assert room.last_activity == clock.now + 50


def test_access_level(backend):
    room = backend.create_room()
    assert room.access_level(room.edit_access_id) is AccessLevel.EDIT
    assert room.access_level(room.view_access_id) is AccessLevel.VIEW_ONLY


def test_room_exists_does_not_touch_activity(backend, clock):
    room = backend.create_room()
    before = room.last_activity
    clock.advance(30)

    assert backend.room_exists(room.view_access_id)
    assert not backend.room_exists("missing")
    assert room.last_activity == before


def test_remove_connection_scans_every_room(backend):
    first = backend.create_room()
    second = backend.create_room()
    untouched = backend.create_room()
    first.subscribers.update({"a", "b"})
    second.subscribers.add("a")
    untouched.subscribers.add("b")

    left = backend.remove_connection("a")

    assert sorted(left) == sorted([first.room_id, second.room_id])
    assert first.subscribers == {"b"}
    assert second.subscribers == set()
    assert untouched.subscribers == {"b"}


def test_idle_rooms_uses_strict_threshold(backend, clock):
    stale = backend.create_room()
    clock.advance(60)
    fresh = backend.create_room()
    clock.advance(40)

    assert backend.idle_rooms(100) == []
    clock.advance(1)
    assert backend.idle_rooms(100) == [stale]
    assert fresh not in backend.idle_rooms(100)


class TestTimerSet:
    def test_add_rejects_duplicate_ids(self):
        timers = TimerSet()
        timers.add({"id": "t1", "running": False})
        with pytest.raises(TimerAlreadyExists):
            timers.add({"id": "t1", "running": True})
        assert timers.snapshot() == [{"id": "t1", "running": False}]

    def test_update_merges_present_fields_only(self):
        timers = TimerSet()
        timers.add({"id": "t1", "running": False, "eventName": "Swiss"})
        updated = timers.update("t1", {"id": "t1", "running": True})
        assert updated == {"id": "t1", "running": True, "eventName": "Swiss"}
        assert timers.get("t1") == updated

    def test_update_and_remove_unknown_id(self):
        timers = TimerSet()
        timers.add({"id": "t1"})
        with pytest.raises(TimerNotFound):
            timers.update("t2", {"running": True})
        with pytest.raises(TimerNotFound):
            timers.remove("t2")
        assert len(timers) == 1

    def test_remove_keeps_order_of_remaining(self):
        timers = TimerSet()
        for timer_id in ("a", "b", "c"):
            timers.add({"id": timer_id})
        timers.remove("b")
        assert [timer["id"] for timer in timers.snapshot()] == ["a", "c"]

    def test_snapshot_is_a_copy(self):
        timers = TimerSet()
        timers.add({"id": "t1", "running": False})
        timers.snapshot()[0]["running"] = True
        assert timers.get("t1")["running"] is False


def test_backend_accepts_custom_generator(clock):
    values = iter(["edit-1", "view-1"])
    backend = RoomBackend(clock=clock, access_id_generator=lambda: next(values))
    room = backend.create_room()
    assert (room.edit_access_id, room.view_access_id) == ("edit-1", "view-1")


def test_room_errors_default_and_custom_messages():
    assert TimerNotFound().message == "Timer not found"
    assert str(InvalidToken()) == "Invalid access ID"
    assert TimerNotFound(None).message == "Timer not found"
    assert RoomNotFound("Room gone").message == "Room gone"
