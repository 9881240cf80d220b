from pydantic import BaseModel, Field
from typing import List

from schemas.messages import HistoryEntry


class CreateRoomRequest(BaseModel):
    name: str = Field(min_length=1)

class CreateRoomResponse(BaseModel):
    name: str
    created: bool

class RoomListResponse(BaseModel):
    rooms: List[str]

class OnlineUser(BaseModel):
    connection_id: int
    display_name: str

class RoomDetailsResponse(BaseModel):
    name: str
    registered: bool
    online_users_count: int
    online_users: List[OnlineUser]

class ChatHistoryResponse(BaseModel):
    room: str
    messages: List[HistoryEntry]
