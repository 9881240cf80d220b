from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from redis.exceptions import RedisError
import asyncio
import os

from backend import RedisBackend
from connection import Connection
from constants import CHAT_ECHO_SENDER, CHAT_HISTORY_LIMIT, WRITER_FLUSH_TIMEOUT
from lifecycle import LifecycleController
from routers.rooms import rooms_router
from logging_config import get_logger, setup_logging

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


async def websocket_endpoint(websocket: WebSocket):
    """One relay connection: room list on open, then one request per text frame until close."""
    controller: LifecycleController = websocket.app.state.controller
    await websocket.accept()

    connection = Connection(websocket)
    writer = asyncio.create_task(connection.pump())
    client_host = websocket.client.host if websocket.client else "unknown"
    logger.info(f"WebSocket connection accepted from {client_host} as connection {connection.id}")

    try:
        await controller.connect(connection)
        message_count = 0
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected for connection {connection.id} (code {message.get('code')})")
                break

            message_count += 1
            data = message.get("text")
            if data is None:
                data = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            logger.debug(f"Received frame #{message_count} from connection {connection.id}")
            await controller.handle_frame(connection, data)
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.id}: {e}", exc_info=True)
    finally:
        controller.disconnect(connection)
        connection.close()
        try:
            await asyncio.wait_for(writer, timeout=WRITER_FLUSH_TIMEOUT)
        except asyncio.TimeoutError:
            logger.debug(f"Outbox of connection {connection.id} not flushed within {WRITER_FLUSH_TIMEOUT}s, dropped")


def create_app(store=None, echo_sender: bool = CHAT_ECHO_SENDER, history_limit: int = CHAT_HISTORY_LIMIT) -> FastAPI:
    store = store if store is not None else RedisBackend()
    controller = LifecycleController(store, echo_sender=echo_sender, history_limit=history_limit)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await store.ping()
            logger.info("Store reachable")
        except (RedisError, OSError) as e:
            logger.warning(f"Store not reachable at startup, rooms and history degrade until it is: {e}")
        yield
        await store.close()

    app = FastAPI(title="RoomRelay", lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.controller = controller
    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)
    app.add_api_websocket_route("/", websocket_endpoint)

    @app.get("/health")
    async def health():
        try:
            store_ok = await store.ping()
        except (RedisError, OSError):
            store_ok = False
        return {"ok": True, "store": store_ok}

    logger.info(f"FastAPI application initialized (chat echo to sender: {echo_sender})")
    return app


app = create_app()
