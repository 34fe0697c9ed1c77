import asyncio
import uuid
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from backend import room_backend
from connections import ClientConnection, ConnectionManager
from constants import ACCESS_ID_QUERY_PARAM, CORS_ALLOW_ORIGINS, HTTP_FALLBACK_TEXT, LOG_FILE, LOG_LEVEL
from dispatcher import Dispatcher
from logging_config import get_logger, setup_logging
from reaper import InactivityReaper
from routers.rooms import rooms_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

# Process-wide state: one backend, one connection table, both only ever
# touched from the event loop thread
connection_manager = ConnectionManager(room_backend.rooms)
dispatcher = Dispatcher(room_backend, connection_manager)
reaper = InactivityReaper(room_backend, connection_manager)


@asynccontextmanager
async def lifespan(app: FastAPI):
    reaper.start()
    try:
        yield
    finally:
        await reaper.stop()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

logger.info("FastAPI application initialized")


@app.get("/", response_class=PlainTextResponse)
async def index():
    return HTTP_FALLBACK_TEXT


@app.websocket("/")
async def websocket_endpoint(websocket: WebSocket, access_id: Optional[str] = Query(None, alias=ACCESS_ID_QUERY_PARAM)):
    """Timer room channel.

    Query parameters:
    - room: optional access id; the connection is subscribed to its room on open
    """
    connection_id = uuid.uuid4().hex
    await websocket.accept()

    connection = ClientConnection(connection_id, websocket)
    connection_manager.register(connection)
    writer = asyncio.create_task(connection.pump())
    logger.info(f"Opened connection {connection_id}")

    try:
        if access_id:
            dispatcher.connect(connection_id, access_id)

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""
            dispatcher.dispatch(connection_id, data)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        dispatcher.disconnect(connection_id)
        writer.cancel()
        with suppress(asyncio.CancelledError):
            await writer
        logger.info(f"Closed connection {connection_id}")
