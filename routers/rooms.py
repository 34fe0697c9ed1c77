from fastapi import APIRouter, Request

from backend import room_backend
from logging_config import get_logger
from schemas.rooms import RoomValidityResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{access_id}/validity", response_model=RoomValidityResponse)
async def get_room_validity(access_id: str, request: Request):
    """HTTP counterpart of the ``roomCheck`` message.

    Only reports whether the access id opens a live room; it does not reveal
    the tier and does not count as room activity.
    """
    client_host = request.client.host if request.client else 'unknown'
    valid = room_backend.room_exists(access_id)
    logger.debug(f"Room validity request from {client_host}: valid={valid}")
    return RoomValidityResponse(access_id=access_id, valid=valid)
