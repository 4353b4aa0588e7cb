from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateRoomRequest(CamelModel):
    room_id: Optional[str] = Field(None, alias="roomId")

class CreateRoomResponse(CamelModel):
    ok: bool = True
    room_id: str = Field(alias="roomId")
    expires_in_sec: int = Field(alias="expiresInSec")

class RoomDetailsResponse(CamelModel):
    room_id: str = Field(alias="roomId")
    created_at: int = Field(alias="createdAt")
    expires_at: int = Field(alias="expiresAt")
    members: list[str]
    member_count: int = Field(alias="memberCount")
    is_full: bool = Field(alias="isFull")

class HealthResponse(CamelModel):
    ok: bool = True
    version: str
    rooms: int
    ts: int
