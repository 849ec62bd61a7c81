import json
from typing import Optional, Union

from pydantic import ValidationError

from connection import Connection
from logging_config import get_logger
from rate_limiter import RateLimiter
from registry import RoomRegistry
from schemas.messages import JoinedMessage, JoinRoomMessage

logger = get_logger(__name__)

JOIN_ROOM = "join_room"


class MessageRouter:
    """Routes inbound frames to a room join or a broadcast.

    Anything the relay cannot use (rate limited, not JSON, not an object,
    no room to forward to) is dropped without telling the sender.
    """

    def __init__(self, registry: RoomRegistry, rate_limiter: Optional[RateLimiter] = None):
        self.registry = registry
        self.rate_limiter = rate_limiter or RateLimiter()

    async def handle(self, connection: Connection, frame: Union[str, bytes]):
        if not self.rate_limiter.allow(connection):
            return

        try:
            message = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug(f"Ignoring non-JSON frame from connection {connection.connection_id}")
            return

        if not isinstance(message, dict):
            logger.debug(f"Ignoring non-object frame from connection {connection.connection_id}")
            return

        if message.get("type") == JOIN_ROOM:
            try:
                join = JoinRoomMessage.model_validate(message)
            except ValidationError:
                # Not a usable join request, treat it as a regular message
                join = None
            if join is not None:
                await self.join(connection, join.room)
                return

        if connection.room is None:
            logger.debug(f"Connection {connection.connection_id} is not in a room, dropping frame")
            return

        if "room" not in message:
            message["room"] = connection.room

        await self.registry.broadcast(connection.room, message, connection)

    async def join(self, connection: Connection, room: str) -> str:
        self.registry.leave(connection)
        room_code = self.registry.join(connection, room)
        ack = JoinedMessage(room=room_code)
        await connection.send(ack.model_dump_json())
        return room_code
