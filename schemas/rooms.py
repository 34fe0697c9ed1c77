from pydantic import BaseModel


class RoomValidityResponse(BaseModel):
    access_id: str
    valid: bool
