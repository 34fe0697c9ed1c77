import asyncio
from contextlib import suppress
from typing import List, Optional

from backend import RoomBackend
from connections import ConnectionManager
from constants import REAP_INTERVAL_SECONDS, ROOM_IDLE_TIMEOUT_SECONDS
from logging_config import get_logger
from schemas import messages

logger = get_logger(__name__)


class InactivityReaper:
    """Evicts rooms nobody has touched for ``idle_timeout`` seconds."""

    def __init__(
        self,
        backend: RoomBackend,
        connections: ConnectionManager,
        idle_timeout: float = ROOM_IDLE_TIMEOUT_SECONDS,
        interval: float = REAP_INTERVAL_SECONDS,
    ):
        self.backend = backend
        self.connections = connections
        self.idle_timeout = idle_timeout
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Run one full pass over all rooms and return the evicted room ids.

        The pass never awaits, so it always completes before any other
        request is handled.
        """
        now = self.backend.clock() if now is None else now
        evicted = []
        for room in self.backend.idle_rooms(self.idle_timeout, now):
            for connection_id in list(room.subscribers):
                self.connections.send(connection_id, messages.unsubscribe_success())
                room.subscribers.discard(connection_id)
            self.backend.rooms.destroy(room.room_id)
            evicted.append(room.room_id)
            logger.info(f"Evicted room {room.room_id} after {room.idle_for(now):.0f}s idle")

        logger.info(f"Inactivity sweep done: {len(evicted)} evicted, {len(self.backend.rooms)} remaining")
        return evicted

    async def run(self):
        logger.info(f"Starting inactivity reaper (every {self.interval}s, idle timeout {self.idle_timeout}s)")
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Inactivity sweep failed: {e}", exc_info=True)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Inactivity reaper stopped")
