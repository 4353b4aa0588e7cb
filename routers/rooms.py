from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from backend import epoch_ms, generate_room_id, normalize_room_id
from schemas.rooms import CreateRoomRequest, CreateRoomResponse, HealthResponse, RoomDetailsResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])
health_router = APIRouter(tags=["health"])


@rooms_router.post("", response_model=CreateRoomResponse)
async def create_room(request: Request, room: Optional[CreateRoomRequest] = None):
    # Body: { "roomId": "optional" }
    # Response: { "ok": true, "roomId": "ABC123", "expiresInSec": 600 }
    client_host = request.client.host if request.client else "unknown"
    requested = normalize_room_id(room.room_id if room else None)
    room_id = requested or generate_room_id()
    logger.info(f"Room creation request from {client_host}, roomId: {requested or '(generated)'}")

    registry = request.app.state.registry
    await registry.ensure(room_id)

    return CreateRoomResponse(room_id=room_id, expires_in_sec=int(request.app.state.session_ttl))


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get room details.

    Returns:
    - roomId: upper-cased room identifier
    - createdAt / expiresAt: epoch milliseconds
    - members: member ids in join order
    - memberCount, isFull
    """
    room_id = normalize_room_id(room_id)
    registry = request.app.state.registry
    snapshot = await registry.snapshot(room_id)
    if snapshot is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    ttl = request.app.state.session_ttl
    return RoomDetailsResponse(
        room_id=room_id,
        created_at=epoch_ms(snapshot.created_at),
        expires_at=epoch_ms(snapshot.created_at + ttl),
        members=snapshot.member_ids,
        member_count=len(snapshot.member_ids),
        is_full=len(snapshot.member_ids) >= registry.max_members,
    )


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    registry = request.app.state.registry
    return HealthResponse(
        version=request.app.state.version,
        rooms=await registry.count(),
        ts=epoch_ms(registry.now()),
    )
