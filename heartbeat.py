import asyncio
from typing import Optional, Set

from connection import Connection
from constants import HEARTBEAT_INTERVAL
from logging_config import get_logger
from registry import RoomRegistry

logger = get_logger(__name__)


class HeartbeatMonitor:
    """Pings every live connection on a fixed interval.

    A connection that has not acknowledged the previous ping by the next
    sweep leaves its room and is terminated.

    Under uvicorn the ASGI app cannot send ping frames, so
    `WebSocketConnection.ping` acknowledges immediately and this sweep never
    terminates anyone there. Dead peers are dropped by uvicorn's own
    `ws_ping_interval` / `ws_ping_timeout` keepalive, which surfaces as a
    disconnect in the receive loop.
    """

    def __init__(self, registry: RoomRegistry, interval: float = HEARTBEAT_INTERVAL):
        self.registry = registry
        self.interval = interval
        self.connections: Set[Connection] = set()
        self._task: Optional[asyncio.Task] = None

    def track(self, connection: Connection):
        self.connections.add(connection)

    def discard(self, connection: Connection):
        self.connections.discard(connection)

    async def sweep(self) -> int:
        """Run one heartbeat pass. Returns the number of terminated connections."""
        terminated = 0
        for connection in list(self.connections):
            if not connection.is_alive:
                logger.info(f"Connection {connection.connection_id} missed a heartbeat, terminating")
                self.registry.leave(connection)
                self.discard(connection)
                await connection.terminate()
                terminated += 1
                continue

            connection.is_alive = False
            try:
                await connection.ping()
            except Exception as e:
                logger.debug(f"Error pinging connection {connection.connection_id}: {e}")

        if terminated:
            logger.info(f"Heartbeat terminated {terminated} connections, {len(self.connections)} remaining")
        return terminated

    async def _run(self):
        logger.info(f"Heartbeat monitor started (interval: {self.interval}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.sweep()
                except Exception as e:
                    logger.error(f"Error during heartbeat sweep: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Heartbeat monitor stopped")
            raise

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
