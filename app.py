from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from connection import WebSocketConnection
from constants import HEARTBEAT_INTERVAL, LOG_FILE, LOG_LEVEL
from heartbeat import HeartbeatMonitor
from logging_config import get_logger, setup_logging
from rate_limiter import RateLimiter
from registry import RoomRegistry
from relay import MessageRouter
from routers.health import health_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.heartbeat.start()
    try:
        yield
    finally:
        await app.state.heartbeat.stop()


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    # Only GET / exists over plain HTTP; everything else is an empty 404
    if exc.status_code in (404, 405):
        return Response(status_code=404)
    return await http_exception_handler(request, exc)


def create_app(
    registry: Optional[RoomRegistry] = None,
    rate_limiter: Optional[RateLimiter] = None,
    heartbeat_interval: float = HEARTBEAT_INTERVAL,
) -> FastAPI:
    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    registry = registry or RoomRegistry()
    app.state.registry = registry
    app.state.router = MessageRouter(registry, rate_limiter)
    app.state.heartbeat = HeartbeatMonitor(registry, interval=heartbeat_interval)

    app.include_router(health_router)
    app.add_api_websocket_route("/{path:path}", websocket_endpoint)

    logger.info("FastAPI application initialized")
    return app


async def websocket_endpoint(websocket: WebSocket, path: str):
    """Relay endpoint. Clients join rooms with a `join_room` frame after connecting."""
    registry: RoomRegistry = websocket.app.state.registry
    router: MessageRouter = websocket.app.state.router
    heartbeat: HeartbeatMonitor = websocket.app.state.heartbeat

    await websocket.accept()
    connection = WebSocketConnection(websocket)
    heartbeat.track(connection)
    logger.info(f"WebSocket connection {connection.connection_id} accepted on /{path}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection.connection_id}")
                break

            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            if frame is None:
                continue
            await router.handle(connection, frame)
    except Exception as e:
        logger.warning(f"WebSocket error for connection {connection.connection_id}: {e}")
    finally:
        registry.leave(connection)
        heartbeat.discard(connection)
        await connection.terminate()
        logger.debug(f"Released connection {connection.connection_id}")


app = create_app()
