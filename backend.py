import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from constants import ACCESS_ID_ALPHABET, ACCESS_ID_LENGTH
from errors import InsufficientAccess, InvalidToken, RoomNotFound, TimerAlreadyExists, TimerNotFound
from logging_config import get_logger
from schemas.messages import AccessLevel

logger = get_logger(__name__)

Clock = Callable[[], float]


def generate_access_id(length: int = ACCESS_ID_LENGTH, alphabet: str = ACCESS_ID_ALPHABET) -> str:
    return ''.join(secrets.choice(alphabet) for _ in range(length))


class TokenRegistry:
    """Maps access ids to the room they open. Every room owns exactly two."""

    def __init__(self, generator: Optional[Callable[[], str]] = None):
        self._room_ids: Dict[str, str] = {}
        self._generate = generator or generate_access_id

    def issue(self, room_id: str) -> str:
        access_id = self._generate()
        while access_id in self._room_ids:
            logger.debug("Access id collision, generating another")
            access_id = self._generate()
        self._room_ids[access_id] = room_id
        return access_id

    def resolve(self, access_id: str) -> Optional[str]:
        return self._room_ids.get(access_id)

    def revoke(self, access_id: str):
        self._room_ids.pop(access_id, None)

    def __contains__(self, access_id: str) -> bool:
        return access_id in self._room_ids

    def __len__(self) -> int:
        return len(self._room_ids)


class TimerSet:
    """Timers of one room in creation order. Records are stored in wire form."""

    def __init__(self):
        self._timers: List[dict] = []

    def _index(self, timer_id: str) -> int:
        for index, timer in enumerate(self._timers):
            if timer.get("id") == timer_id:
                return index
        return -1

    def get(self, timer_id: str) -> Optional[dict]:
        index = self._index(timer_id)
        return dict(self._timers[index]) if index != -1 else None

    def add(self, timer: dict) -> dict:
        if self._index(timer["id"]) != -1:
            raise TimerAlreadyExists()
        self._timers.append(dict(timer))
        return dict(timer)

    def update(self, timer_id: str, fields: dict) -> dict:
        """Overwrite the stored record with every key present in ``fields``."""
        index = self._index(timer_id)
        if index == -1:
            raise TimerNotFound()
        self._timers[index].update(fields)
        return dict(self._timers[index])

    def remove(self, timer_id: str):
        index = self._index(timer_id)
        if index == -1:
            raise TimerNotFound()
        del self._timers[index]

    def snapshot(self) -> List[dict]:
        return [dict(timer) for timer in self._timers]

    def __len__(self) -> int:
        return len(self._timers)


@dataclass
class Room:
    room_id: str
    edit_access_id: str
    view_access_id: str
    last_activity: float
    timers: TimerSet = field(default_factory=TimerSet)
    # Connection ids only; connections are owned by the ConnectionManager
    subscribers: Set[str] = field(default_factory=set)

    def access_level(self, access_id: str) -> AccessLevel:
        return AccessLevel.EDIT if access_id == self.edit_access_id else AccessLevel.VIEW_ONLY

    def touch(self, now: float):
        self.last_activity = max(self.last_activity, now)

    def idle_for(self, now: float) -> float:
        return now - self.last_activity


class RoomRegistry:
    def __init__(self, tokens: TokenRegistry, clock: Clock = time.monotonic):
        self._rooms: Dict[str, Room] = {}
        self._tokens = tokens
        self._clock = clock

    def create(self) -> Tuple[str, Room]:
        room_id = uuid.uuid4().hex
        while room_id in self._rooms:
            room_id = uuid.uuid4().hex
        edit_access_id = self._tokens.issue(room_id)
        view_access_id = self._tokens.issue(room_id)
        room = Room(
            room_id=room_id,
            edit_access_id=edit_access_id,
            view_access_id=view_access_id,
            last_activity=self._clock(),
        )
        self._rooms[room_id] = room
        logger.info(f"Room {room_id} created")
        return room_id, room

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def destroy(self, room_id: str) -> Optional[Room]:
        room = self._rooms.pop(room_id, None)
        if room is None:
            logger.debug(f"Room {room_id} already destroyed")
            return None
        self._tokens.revoke(room.edit_access_id)
        self._tokens.revoke(room.view_access_id)
        logger.info(f"Room {room_id} destroyed")
        return room

    def all(self) -> List[Room]:
        return list(self._rooms.values())

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)


class AccessResolver:
    """Single gate in front of every tier-sensitive room operation."""

    def __init__(self, tokens: TokenRegistry, rooms: RoomRegistry, clock: Clock = time.monotonic):
        self._tokens = tokens
        self._rooms = rooms
        self._clock = clock

    def resolve(self, access_id: str, require_edit: bool = False) -> Room:
        room_id = self._tokens.resolve(access_id)
        if room_id is None:
            raise InvalidToken()

        room = self._rooms.get(room_id)
        if room is None:
            # Only reachable if the two registries disagree
            logger.error(f"Access id resolves to missing room {room_id}")
            raise RoomNotFound()

        if require_edit and access_id != room.edit_access_id:
            raise InsufficientAccess()

        room.touch(self._clock())
        return room

    def peek(self, access_id: str) -> Optional[Room]:
        """Look a room up without tier checks or touching its activity."""
        room_id = self._tokens.resolve(access_id)
        if room_id is None:
            return None
        return self._rooms.get(room_id)


class RoomBackend:
    def __init__(self, clock: Clock = time.monotonic, access_id_generator: Optional[Callable[[], str]] = None):
        self.clock = clock
        self.tokens = TokenRegistry(generator=access_id_generator)
        self.rooms = RoomRegistry(self.tokens, clock)
        self.access = AccessResolver(self.tokens, self.rooms, clock)
        logger.info("Initializing in-memory RoomBackend")

    def create_room(self) -> Room:
        _, room = self.rooms.create()
        return room

    def room_exists(self, access_id: str) -> bool:
        return self.access.peek(access_id) is not None

    def remove_connection(self, connection_id: str) -> List[str]:
        """Drop a connection from every room it subscribed to."""
        left = []
        for room in self.rooms.all():
            if connection_id in room.subscribers:
                room.subscribers.discard(connection_id)
                left.append(room.room_id)
        logger.debug(f"Connection {connection_id} removed from rooms {left}")
        return left

    def idle_rooms(self, idle_timeout: float, now: Optional[float] = None) -> List[Room]:
        now = self.clock() if now is None else now
        return [room for room in self.rooms.all() if room.idle_for(now) > idle_timeout]


room_backend = RoomBackend()
