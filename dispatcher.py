from typing import Callable

from pydantic import ValidationError

from backend import RoomBackend
from connections import ConnectionManager
from errors import MalformedRequest, RoomError
from logging_config import get_logger
from schemas import messages
from schemas.messages import (
    CreateRoomMessage,
    CreateTimerMessage,
    DeleteTimerMessage,
    GetRoomInfoMessage,
    RoomCheckMessage,
    SubscribeMessage,
    TimerRecord,
    UnsubscribeMessage,
    UpdateTimerMessage,
    client_message_adapter,
)

logger = get_logger(__name__)


def parse_client_message(raw):
    try:
        return client_message_adapter.validate_json(raw)
    except ValidationError as e:
        raise MalformedRequest(f"Invalid message: {e.error_count()} validation error(s)") from e


class Dispatcher:
    """Routes inbound client messages to room operations.

    Every handler runs to completion without awaiting: state changes and the
    messages they produce are enqueued before the next request is looked at.
    """

    def __init__(self, backend: RoomBackend, connections: ConnectionManager):
        self.backend = backend
        self.connections = connections

    def dispatch(self, connection_id: str, raw):
        try:
            message = parse_client_message(raw)
        except MalformedRequest as e:
            logger.warning(f"Dropping malformed message from connection {connection_id}: {e.message}")
            return

        logger.debug(f"Received {message.type} from connection {connection_id}")
        self._guarded(connection_id, self._route, connection_id, message)

    def connect(self, connection_id: str, access_id: str):
        """Auto-subscribe a connection that supplied an access id when connecting."""
        self._guarded(connection_id, self.subscribe, connection_id, access_id)

    def _guarded(self, connection_id: str, handler: Callable, *args):
        try:
            handler(*args)
        except MalformedRequest as e:
            logger.warning(f"Dropping malformed message from connection {connection_id}: {e.message}")
        except RoomError as e:
            logger.info(f"Request from connection {connection_id} failed: {e.message}")
            self.connections.send(connection_id, messages.error(e.message))
        except Exception as e:
            logger.error(f"Error handling message from connection {connection_id}: {e}", exc_info=True)

    def _route(self, connection_id: str, message):
        match message:
            case CreateRoomMessage():
                self.create_room(connection_id)
            case SubscribeMessage(access_id=access_id):
                self.subscribe(connection_id, access_id)
            case UnsubscribeMessage(access_id=access_id):
                self.unsubscribe(connection_id, access_id)
            case GetRoomInfoMessage(access_id=access_id):
                self.get_room_info(connection_id, access_id)
            case CreateTimerMessage(access_id=access_id, timer=timer):
                self.create_timer(connection_id, access_id, timer)
            case UpdateTimerMessage(access_id=access_id, timer=timer):
                self.update_timer(connection_id, access_id, timer)
            case DeleteTimerMessage(access_id=access_id, id=timer_id):
                self.delete_timer(connection_id, access_id, timer_id)
            case RoomCheckMessage(access_id=access_id):
                self.room_check(connection_id, access_id)
            case _:
                raise MalformedRequest(f"Unknown message type {type(message).__name__}")

    def create_room(self, connection_id: str):
        room = self.backend.create_room()
        logger.info(f"Connection {connection_id} created room {room.room_id}")
        self.subscribe(connection_id, room.edit_access_id)

    def subscribe(self, connection_id: str, access_id: str):
        room = self.backend.access.resolve(access_id)
        access_level = room.access_level(access_id)
        room.subscribers.add(connection_id)
        logger.info(f"Connection {connection_id} subscribed to room {room.room_id} ({access_level.value})")

        self.connections.send(
            connection_id,
            messages.room_info(access_level, room.view_access_id, room.edit_access_id),
        )
        self.connections.send(connection_id, messages.room_update(room.timers.snapshot()))

    def unsubscribe(self, connection_id: str, access_id: str):
        room = self.backend.access.resolve(access_id)
        room.subscribers.discard(connection_id)
        logger.info(f"Connection {connection_id} unsubscribed from room {room.room_id}")
        self.connections.send(connection_id, messages.unsubscribe_success())

    def get_room_info(self, connection_id: str, access_id: str):
        room = self.backend.access.resolve(access_id)
        self.connections.send(connection_id, messages.room_update(room.timers.snapshot()))

    def create_timer(self, connection_id: str, access_id: str, timer: TimerRecord):
        room = self.backend.access.resolve(access_id, require_edit=True)
        created = room.timers.add(messages.timer_payload(timer))
        logger.debug(f"Timer {timer.id} created in room {room.room_id}")
        self.connections.publish(room.room_id, messages.timer_created(created))

    def update_timer(self, connection_id: str, access_id: str, timer: TimerRecord):
        room = self.backend.access.resolve(access_id, require_edit=True)
        updated = room.timers.update(timer.id, messages.timer_payload(timer))
        logger.debug(f"Timer {timer.id} updated in room {room.room_id}")
        self.connections.publish(room.room_id, messages.timer_updated(updated))

    def delete_timer(self, connection_id: str, access_id: str, timer_id: str):
        room = self.backend.access.resolve(access_id, require_edit=True)
        room.timers.remove(timer_id)
        logger.debug(f"Timer {timer_id} deleted from room {room.room_id}")
        self.connections.publish(room.room_id, messages.timer_deleted(timer_id))

    def room_check(self, connection_id: str, access_id: str):
        # Pure existence probe: no tier check, no activity touch, never an error
        valid = self.backend.room_exists(access_id)
        self.connections.send(connection_id, messages.room_validity(valid))

    def disconnect(self, connection_id: str):
        left = self.backend.remove_connection(connection_id)
        self.connections.unregister(connection_id)
        logger.info(f"Connection {connection_id} closed, left {len(left)} room(s)")
