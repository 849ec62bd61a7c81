import time
from typing import Callable

from connection import Connection
from constants import RATE_LIMIT_MAX_MESSAGES, RATE_LIMIT_WINDOW
from logging_config import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Fixed window message counter kept on each connection.

    The count keeps growing while frames are being dropped, so a flooding
    client stays limited until its window expires on its own.
    """

    def __init__(
        self,
        max_messages: int = RATE_LIMIT_MAX_MESSAGES,
        window_seconds: float = RATE_LIMIT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self.clock = clock

    def allow(self, connection: Connection) -> bool:
        now = self.clock()
        if connection.window_start is None or now - connection.window_start > self.window_seconds:
            connection.window_start = now
            connection.count = 0

        connection.count += 1
        if connection.count > self.max_messages:
            logger.debug(
                f"Rate limit exceeded for connection {connection.connection_id} "
                f"({connection.count}/{self.max_messages}), dropping frame"
            )
            return False
        return True
