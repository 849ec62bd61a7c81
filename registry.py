import json
from typing import Any, Dict, Optional, Set

from connection import Connection
from logging_config import get_logger

logger = get_logger(__name__)


def canonical_code(code: str) -> str:
    return code.strip().upper()


class RoomRegistry:
    """In-memory mapping of room code -> member connections.

    Rooms are created on first join and removed as soon as they are empty.
    None of the mutating methods await, so on a single event loop each
    join/leave completes before any other handler observes the registry.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[Connection]] = {}

    def join(self, connection: Connection, code: str) -> str:
        room_code = canonical_code(code)
        if connection.room is not None:
            self.leave(connection)

        if room_code not in self._rooms:
            self._rooms[room_code] = set()
            logger.info(f"Room {room_code} created")
        self._rooms[room_code].add(connection)

        connection.room = room_code
        connection.mark_alive()
        logger.info(
            f"Connection {connection.connection_id} joined room {room_code} "
            f"(members: {len(self._rooms[room_code])})"
        )
        return room_code

    def leave(self, connection: Connection):
        room_code = connection.room
        if room_code is None:
            return

        members = self._rooms.get(room_code)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room_code]
                logger.info(f"Room {room_code} is empty, removing it")
        connection.room = None
        logger.debug(f"Connection {connection.connection_id} left room {room_code}")

    async def broadcast(self, code: str, payload: Any, except_connection: Optional[Connection] = None) -> int:
        """Send `payload` to every member of `code` except `except_connection`.

        Best effort: closed members are skipped and a failed send releases
        that member. Returns how many members the frame was sent to.
        """
        code = canonical_code(code)
        members = self._rooms.get(code)
        if not members:
            return 0

        message = payload if isinstance(payload, str) else json.dumps(payload)
        delivered = 0
        # Sends yield to the loop: iterate a snapshot and skip peers that left meanwhile
        for peer in list(members):
            if peer is except_connection or peer.room != code or not peer.is_open:
                continue
            try:
                await peer.send(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Error sending to connection {peer.connection_id} in room {code}: {e}")
                self.leave(peer)
                await peer.terminate()

        logger.debug(f"Broadcast to {delivered} connections in room {code}")
        return delivered

    def members(self, code: str) -> Set[Connection]:
        return set(self._rooms.get(canonical_code(code), ()))

    def has_room(self, code: str) -> bool:
        return canonical_code(code) in self._rooms

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: str) -> bool:
        return self.has_room(code)
