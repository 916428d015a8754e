"""Tests for the room registry and presence helpers."""

from __future__ import annotations

from aiowatchsync.server import Member, NameTable, PlaybackState, RoomRegistry, is_live

from .conftest import FakeConnection


class TestJoin:
    """Joining rooms."""

    def test_join_creates_room_with_default_state(self, registry: RoomRegistry) -> None:
        assert registry.join("room1", Member("u1", FakeConnection()))

        room = registry.get("room1")
        assert room is not None
        assert room.state == PlaybackState(
            playing=False, position_seconds=0.0, reference_timestamp_ms=0
        )
        assert registry.snapshot_members("room1") == ["u1"]

    def test_join_twice_while_live_is_idempotent(self, registry: RoomRegistry) -> None:
        conn = FakeConnection()
        registry.join("room1", Member("u1", conn))
        assert not registry.join("room1", Member("u1", conn))

        assert registry.live_member_count("room1") == 1

    def test_rejoin_from_new_connection_rebinds(self, registry: RoomRegistry) -> None:
        old, new = FakeConnection(), FakeConnection()
        registry.join("room1", Member("u1", old))
        assert not registry.join("room1", Member("u1", new))

        room = registry.get("room1")
        assert room is not None
        assert [member.connection for member in room.members] == [new]

    def test_rejoin_after_close_replaces_stale_entry(self, registry: RoomRegistry) -> None:
        old = FakeConnection()
        registry.join("room1", Member("u1", old))
        registry.join("room1", Member("u2", FakeConnection()))
        old.closed = True

        assert registry.join("room1", Member("u1", FakeConnection()))
        assert registry.snapshot_members("room1") == ["u2", "u1"]
        assert registry.live_member_count("room1") == 2

    def test_join_keeps_order(self, registry: RoomRegistry) -> None:
        for user in ("a", "b", "c"):
            registry.join("room1", Member(user, FakeConnection()))
        assert registry.snapshot_members("room1") == ["a", "b", "c"]

    def test_closed_connection_join_leaves_no_room(self, registry: RoomRegistry) -> None:
        registry.join("room1", Member("u1", FakeConnection(closed=True)))
        assert "room1" not in registry


class TestLeave:
    """Leaving rooms and room cleanup."""

    def test_all_leaving_deletes_room(self, registry: RoomRegistry) -> None:
        users = ["u1", "u2", "u3"]
        for user in users:
            registry.join("room1", Member(user, FakeConnection()))
        for user in users:
            registry.leave("room1", user)

        assert "room1" not in registry
        assert len(registry) == 0
        assert registry.live_member_count("room1") == 0
        assert registry.snapshot_members("room1") == []

    def test_leave_preserves_order_of_rest(self, registry: RoomRegistry) -> None:
        for user in ("a", "b", "c"):
            registry.join("room1", Member(user, FakeConnection()))
        assert registry.leave("room1", "b")
        assert registry.snapshot_members("room1") == ["a", "c"]

    def test_leave_unknown_is_noop(self, registry: RoomRegistry) -> None:
        assert not registry.leave("nowhere", "u1")
        registry.join("room1", Member("u1", FakeConnection()))
        assert not registry.leave("room1", "u2")
        assert registry.live_member_count("room1") == 1

    def test_leave_deletes_room_when_only_dead_members_remain(
        self, registry: RoomRegistry
    ) -> None:
        dead = FakeConnection()
        registry.join("room1", Member("u1", dead))
        registry.join("room1", Member("u2", FakeConnection()))
        dead.closed = True

        registry.leave("room1", "u2")
        assert "room1" not in registry

    def test_remove_connection_spares_newer_connection(self, registry: RoomRegistry) -> None:
        old, new = FakeConnection(), FakeConnection()
        registry.join("room1", Member("u1", old))
        registry.join("room1", Member("u1", new))

        assert not registry.remove_connection("room1", old)
        assert registry.snapshot_members("room1") == ["u1"]
        assert registry.remove_connection("room1", new)
        assert "room1" not in registry

    def test_remove_connection_ignores_user_id(self, registry: RoomRegistry) -> None:
        conn, other = FakeConnection(), FakeConnection()
        registry.join("room1", Member("u1", conn))
        registry.join("room1", Member("u2", other))

        assert registry.remove_connection("room1", conn)
        assert registry.snapshot_members("room1") == ["u2"]
        assert not registry.remove_connection("nowhere", conn)

    def test_remove_connection_deletes_room_left_with_dead_members(
        self, registry: RoomRegistry
    ) -> None:
        dead, conn = FakeConnection(), FakeConnection()
        registry.join("room1", Member("u1", dead))
        registry.join("room1", Member("u2", conn))
        dead.closed = True

        assert registry.remove_connection("room1", conn)
        assert "room1" not in registry

    def test_leave_keeps_playback_state(self, registry: RoomRegistry) -> None:
        registry.join("room1", Member("u1", FakeConnection()))
        registry.join("room1", Member("u2", FakeConnection()))
        room = registry.get("room1")
        assert room is not None
        room.state.playing = True
        room.state.position_seconds = 12.0

        registry.leave("room1", "u1")
        assert room.state.playing
        assert room.state.position_seconds == 12.0


class TestPresence:
    """Liveness and display names."""

    def test_liveness_is_read_from_connection(self, registry: RoomRegistry) -> None:
        conn = FakeConnection()
        member = Member("u1", conn)
        registry.join("room1", member)
        assert is_live(member)

        conn.closed = True
        assert not is_live(member)
        assert registry.live_member_count("room1") == 0
        assert registry.snapshot_members("room1") == []

    def test_rooms_are_isolated(self, registry: RoomRegistry) -> None:
        registry.join("a", Member("u1", FakeConnection()))
        registry.join("b", Member("u2", FakeConnection()))
        registry.leave("a", "u2")

        assert registry.snapshot_members("a") == ["u1"]
        assert registry.snapshot_members("b") == ["u2"]
        assert sorted(registry.rooms) == ["a", "b"]

    def test_snapshot_uses_display_names(self, registry: RoomRegistry, names: NameTable) -> None:
        registry.join("room1", Member("u1", FakeConnection()))
        registry.join("room1", Member("u2", FakeConnection()))
        names.set_name("u1", "Ann")

        assert registry.snapshot_members("room1", names) == ["Ann", "u2"]

    def test_name_table(self, names: NameTable) -> None:
        names.set_name("u1", "Ann")
        assert names.get("u1") == "Ann"
        assert "u1" in names

        names.set_name("u1", None)
        assert names.get("u1") is None
        assert names.display_name("u1") == "u1"

        names.set_name("u2", "Bo")
        names.clear_name("u2")
        names.clear_name("missing")
        assert len(names) == 0

    def test_name_is_only_cleared_by_its_owner(self, names: NameTable) -> None:
        old, new = FakeConnection(), FakeConnection()
        names.set_name("u1", "Ann", owner=new)

        names.clear_name("u1", owner=old)
        assert names.get("u1") == "Ann"

        names.clear_name("u1", owner=new)
        assert names.get("u1") is None

    def test_explicit_clear_ignores_owner(self, names: NameTable) -> None:
        names.set_name("u1", "Ann", owner=FakeConnection())
        names.set_name("u1", None)
        assert "u1" not in names
