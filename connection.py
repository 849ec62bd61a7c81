import uuid
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """Per-connection state shared by the registry, rate limiter and heartbeat.

    Subclasses provide the transport: `is_open`, `send`, `close` and `ping`.
    """

    def __init__(self, connection_id: Optional[str] = None):
        self.connection_id = connection_id or str(uuid.uuid4())
        self.room: Optional[str] = None
        self.is_alive = True
        # Rate-limit window, in seconds of the limiter's clock
        self.window_start: Optional[float] = None
        self.count = 0

    def mark_alive(self, *_):
        self.is_alive = True

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    async def send(self, text: str):
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError

    async def ping(self):
        raise NotImplementedError

    async def terminate(self):
        """Close without caring whether the peer is still there."""
        try:
            await self.close()
        except Exception as e:
            logger.debug(f"Ignoring error while terminating connection {self.connection_id}: {e}")

    def __repr__(self):
        return f"<{type(self).__name__} {self.connection_id[:8]} room={self.room}>"


class WebSocketConnection(Connection):
    """Connection backed by a FastAPI/Starlette WebSocket."""

    PING_EXTENSION = "websocket.ping"

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        super().__init__(connection_id)
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, text: str):
        await self.websocket.send_text(text)

    async def close(self):
        if self.websocket.application_state != WebSocketState.DISCONNECTED:
            await self.websocket.close()

    async def ping(self):
        # ASGI has no control-frame message. Servers that expose a ping
        # extension get a real ping; otherwise the server's own keepalive
        # is responsible for dropping dead peers on the wire.
        extensions = self.websocket.scope.get("extensions") or {}
        ping = (extensions.get(self.PING_EXTENSION) or {}).get("ping")
        if ping is None:
            self.mark_alive()
            return
        pong_waiter = await ping()
        pong_waiter.add_done_callback(self.mark_alive)
