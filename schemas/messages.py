from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class AccessLevel(str, Enum):
    EDIT = "edit"
    VIEW_ONLY = "viewonly"


class WireModel(BaseModel):
    """Models are snake_case in Python and camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimerRecord(WireModel):
    """Opaque timer payload.

    Only ``id`` is checked; every other key is kept exactly as the client sent
    it and republished verbatim.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str


class CreateRoomMessage(WireModel):
    type: Literal["createRoom"]


class SubscribeMessage(WireModel):
    type: Literal["subscribe"]
    access_id: str


class UnsubscribeMessage(WireModel):
    type: Literal["unsubscribe"]
    access_id: str


class GetRoomInfoMessage(WireModel):
    type: Literal["getRoomInfo"]
    access_id: str


class CreateTimerMessage(WireModel):
    type: Literal["createTimer"]
    access_id: str
    timer: TimerRecord


class UpdateTimerMessage(WireModel):
    type: Literal["updateTimer"]
    access_id: str
    timer: TimerRecord


class DeleteTimerMessage(WireModel):
    type: Literal["deleteTimer"]
    access_id: str
    id: str


class RoomCheckMessage(WireModel):
    type: Literal["roomCheck"]
    access_id: str


ClientMessage = Annotated[
    Union[
        CreateRoomMessage,
        SubscribeMessage,
        UnsubscribeMessage,
        GetRoomInfoMessage,
        CreateTimerMessage,
        UpdateTimerMessage,
        DeleteTimerMessage,
        RoomCheckMessage,
    ],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)


def timer_payload(timer: TimerRecord) -> Dict[str, Any]:
    """Wire form of an inbound timer: ``id`` plus every key as received."""
    return timer.model_dump(by_alias=True, exclude_unset=True)


# Outbound messages are plain dicts, serialized once per receiver queue

def room_info(access_level: AccessLevel, view_access_id: str, edit_access_id: Optional[str] = None) -> dict:
    message = {
        "type": "roomInfo",
        "accessLevel": access_level.value,
        "viewAccessId": view_access_id,
    }
    if access_level is AccessLevel.EDIT:
        message["editAccessId"] = edit_access_id
    return message


def room_update(timers: List[dict]) -> dict:
    return {"type": "roomUpdate", "timers": timers}


def timer_created(timer: dict) -> dict:
    return {"type": "timerCreated", "timer": timer}


def timer_updated(timer: dict) -> dict:
    return {"type": "timerUpdate", "timer": timer}


def timer_deleted(timer_id: str) -> dict:
    return {"type": "timerDeleted", "id": timer_id}


def unsubscribe_success() -> dict:
    return {"type": "unsubscribeSuccess"}


def room_validity(valid: bool) -> dict:
    return {"type": "roomValidity", "valid": valid}


def error(message: str) -> dict:
    return {"type": "error", "message": message}
