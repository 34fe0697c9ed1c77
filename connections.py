import asyncio
import json
from typing import Dict, Optional

from fastapi import WebSocket

from backend import RoomRegistry
from constants import OUTBOX_MAX_MESSAGES, OUTBOX_OVERFLOW_CLOSE_CODE
from logging_config import get_logger

logger = get_logger(__name__)


class ClientConnection:
    """One WebSocket client with its own outbound queue.

    Handlers only ever enqueue; the ``pump`` task is the single writer to the
    socket, so messages reach each client in the order they were produced.
    """

    def __init__(self, connection_id: str, websocket: WebSocket, max_pending: int = OUTBOX_MAX_MESSAGES):
        self.connection_id = connection_id
        self.websocket = websocket
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=max_pending + 1)
        self.max_pending = max_pending
        self.closed = False

    def send(self, message: dict):
        if self.closed:
            return
        if self.outbox.qsize() >= self.max_pending:
            self._overflow()
            return
        self.outbox.put_nowait(json.dumps(message))

    def _overflow(self):
        """Give up on a client that stopped reading.

        Pending messages are discarded and a ``None`` marker tells ``pump`` to
        close the socket; the receive loop then runs the normal cleanup.
        """
        logger.warning(f"Outbox for connection {self.connection_id} exceeded {self.max_pending} messages, closing")
        self.closed = True
        while not self.outbox.empty():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)

    async def pump(self):
        while True:
            text = await self.outbox.get()
            if text is None:
                try:
                    await self.websocket.close(code=OUTBOX_OVERFLOW_CLOSE_CODE)
                except Exception as e:
                    logger.debug(f"Error closing connection {self.connection_id}: {e}")
                return
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                # Socket is gone; the receive loop will notice and clean up
                logger.warning(f"Error sending to connection {self.connection_id}: {e}")
                self.closed = True
                return

    def close(self):
        self.closed = True


class ConnectionManager:
    """Connection lookup plus per-room fan-out (the broadcast bus).

    Room subscriber sets hold connection ids; this maps them to live clients.
    """

    def __init__(self, rooms: RoomRegistry):
        self._rooms = rooms
        self._connections: Dict[str, ClientConnection] = {}

    def register(self, connection: ClientConnection):
        self._connections[connection.connection_id] = connection
        logger.debug(f"Registered connection {connection.connection_id} ({len(self._connections)} open)")

    def unregister(self, connection_id: str) -> Optional[ClientConnection]:
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            connection.close()
            logger.debug(f"Unregistered connection {connection_id} ({len(self._connections)} open)")
        return connection

    def get(self, connection_id: str) -> Optional[ClientConnection]:
        return self._connections.get(connection_id)

    def send(self, connection_id: str, message: dict) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping {message.get('type')} for unknown connection {connection_id}")
            return False
        connection.send(message)
        return True

    def publish(self, room_id: str, message: dict) -> int:
        """Send ``message`` to every subscriber of the room, sender included."""
        room = self._rooms.get(room_id)
        if room is None or not room.subscribers:
            return 0

        delivered = 0
        for connection_id in list(room.subscribers):
            try:
                if self.send(connection_id, message):
                    delivered += 1
            except Exception as e:
                logger.warning(f"Error publishing to connection {connection_id} in room {room_id}: {e}")
        logger.debug(f"Published {message.get('type')} to {delivered} connections in room {room_id}")
        return delivered

    def __len__(self) -> int:
        return len(self._connections)
