import json

from registry import canonical_code


def test_canonical_code_trims_and_uppercases():
    assert canonical_code("  abc ") == "ABC"
    assert canonical_code("Room-7") == "ROOM-7"


def test_join_with_whitespace_and_case_lands_in_same_room(registry, make_connection):
    a = make_connection("a")
    b = make_connection("b")

    assert registry.join(a, " abc ") == "ABC"
    assert registry.join(b, "ABC") == "ABC"

    assert registry.members("abc") == {a, b}
    assert a.room == b.room == "ABC"
    assert registry.room_count == 1


def test_join_other_room_leaves_previous(registry, make_connection):
    conn = make_connection()
    registry.join(conn, "a")
    registry.join(conn, "b")

    assert conn.room == "B"
    assert "A" not in registry
    assert registry.members("B") == {conn}


def test_join_keeps_other_members_of_previous_room(registry, make_connection):
    stays = make_connection("stays")
    moves = make_connection("moves")
    registry.join(stays, "a")
    registry.join(moves, "a")

    registry.join(moves, "b")

    assert registry.members("a") == {stays}
    assert registry.members("b") == {moves}


def test_join_marks_connection_alive(registry, make_connection):
    conn = make_connection()
    conn.is_alive = False
    registry.join(conn, "x")
    assert conn.is_alive


def test_leave_without_room_is_noop(registry, make_connection):
    conn = make_connection()
    registry.leave(conn)
    assert conn.room is None
    assert registry.room_count == 0


def test_last_member_leaving_removes_room(registry, make_connection):
    a = make_connection("a")
    b = make_connection("b")
    registry.join(a, "room")
    registry.join(b, "room")

    registry.leave(a)
    assert registry.has_room("room")
    assert a.room is None

    registry.leave(b)
    assert not registry.has_room("room")
    assert registry.room_count == 0


async def test_broadcast_skips_sender_and_other_rooms(registry, make_connection):
    sender = make_connection("sender")
    peer = make_connection("peer")
    outsider = make_connection("outsider")
    registry.join(sender, "a")
    registry.join(peer, "a")
    registry.join(outsider, "b")

    delivered = await registry.broadcast("A", {"type": "move", "x": 1}, sender)

    assert delivered == 1
    assert peer.received == [{"type": "move", "x": 1}]
    assert sender.sent == []
    assert outsider.sent == []


async def test_broadcast_sends_strings_verbatim(registry, make_connection):
    peer = make_connection()
    registry.join(peer, "a")

    await registry.broadcast("A", '{"raw": true}')

    assert peer.sent == ['{"raw": true}']


async def test_broadcast_to_missing_room_is_noop(registry, make_connection):
    conn = make_connection()
    registry.join(conn, "a")
    registry.leave(conn)

    assert await registry.broadcast("A", {"type": "move"}) == 0
    assert conn.sent == []


async def test_broadcast_skips_closed_connections(registry, make_connection):
    closed = make_connection("closed", open=False)
    live = make_connection("live")
    registry.join(closed, "a")
    registry.join(live, "a")

    delivered = await registry.broadcast("A", {"n": 1})

    assert delivered == 1
    assert closed.sent == []
    assert live.received == [{"n": 1}]


async def test_broadcast_send_failure_releases_peer_without_raising(registry, make_connection):
    broken = make_connection("broken", fail_send=True)
    healthy = make_connection("healthy")
    registry.join(broken, "a")
    registry.join(healthy, "a")

    delivered = await registry.broadcast("A", {"n": 1})

    assert delivered == 1
    assert healthy.received == [{"n": 1}]
    assert broken.room is None
    assert broken.closed
    assert registry.members("A") == {healthy}


async def test_broadcast_failure_of_only_member_removes_room(registry, make_connection):
    broken = make_connection(fail_send=True)
    registry.join(broken, "solo")

    await registry.broadcast("SOLO", {"n": 1})

    assert not registry.has_room("solo")


async def test_broadcast_serializes_payload_once(registry, make_connection):
    peers = [make_connection(str(i)) for i in range(3)]
    for peer in peers:
        registry.join(peer, "a")

    await registry.broadcast("A", {"type": "tick"})

    assert {peer.sent[0] for peer in peers} == {json.dumps({"type": "tick"})}


async def test_broadcast_skips_member_that_left_during_a_send(registry, make_connection):
    first = make_connection("first")
    second = make_connection("second")
    registry.join(first, "a")
    registry.join(second, "a")

    def moving(conn, other, destination):
        send = conn.send

        async def send_then_move_other(text):
            await send(text)
            registry.join(other, destination)
        return send_then_move_other

    # Whichever member is sent to first moves the other one out of A
    first.send = moving(first, second, "b")
    second.send = moving(second, first, "c")

    delivered = await registry.broadcast("A", {"type": "move"})

    assert delivered == 1
    moved = second if second.room == "B" else first
    assert moved.room in ("B", "C")
    assert moved.sent == []
