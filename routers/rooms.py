from fastapi import APIRouter, HTTPException, Request, Response
from redis.exceptions import RedisError

from backend import RoomRegistration
from schemas.rooms import (
    ChatHistoryResponse,
    CreateRoomRequest,
    CreateRoomResponse,
    OnlineUser,
    RoomDetailsResponse,
    RoomListResponse,
)
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/", response_model=RoomListResponse)
async def list_rooms(request: Request):
    controller = request.app.state.controller
    try:
        rooms = await controller.directory.list_room_names()
    except RedisError as e:
        logger.error(f"Error listing rooms: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Room registry unavailable")
    return RoomListResponse(rooms=rooms)


@rooms_router.post("/", response_model=CreateRoomResponse)
async def create_room(room: CreateRoomRequest, request: Request, response: Response):
    """
    Register a room without joining it. Connected clients receive the new room list
    exactly as when a WebSocket client creates a room.

    Returns 201 when the room was created, 200 when the name was already registered.
    """
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Room creation request from {client_host}, name: {room.name}")

    registration = await request.app.state.controller.create_room(room.name)
    if registration is None:
        raise HTTPException(status_code=503, detail="Failed to register room")

    created = registration is RoomRegistration.CREATED
    response.status_code = 201 if created else 200
    return CreateRoomResponse(name=room.name, created=created)


@rooms_router.get("/{name}", response_model=RoomDetailsResponse)
async def get_room_details(name: str, request: Request):
    controller = request.app.state.controller
    try:
        registered = name in await controller.directory.list_room_names()
    except RedisError as e:
        logger.error(f"Error reading room registry for {name}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Room registry unavailable")

    if not registered and not controller.directory.has_room(name):
        logger.info(f"Room details failed: Room {name} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    members = controller.directory.members(name)
    return RoomDetailsResponse(
        name=name,
        registered=registered,
        online_users_count=len(members),
        online_users=[OnlineUser(connection_id=m.id, display_name=m.display_name) for m in members],
    )


@rooms_router.get("/{name}/history", response_model=ChatHistoryResponse)
async def get_room_history(name: str, request: Request):
    controller = request.app.state.controller
    try:
        messages = await controller.store.history_of(name, controller.history_limit)
    except RedisError as e:
        logger.error(f"Error reading history for room {name}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Chat history unavailable")
    return ChatHistoryResponse(room=name, messages=messages)
