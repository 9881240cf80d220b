import json
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

SIGNAL_KEYS = ("sdp", "candidate")


class DecodeError(ValueError):
    """Raised when an inbound frame is not a well-formed envelope."""


# Client -> server

class ChangeUsernameRequest(BaseModel):
    action: Literal["changeUsername"]
    username: str = Field(min_length=1)

class CreateRoomRequest(BaseModel):
    action: Literal["createRoom"]
    room: str = Field(min_length=1)

class JoinRoomRequest(BaseModel):
    action: Literal["joinRoom"]
    room: str = Field(min_length=1)

class LeaveRoomRequest(BaseModel):
    action: Literal["leaveRoom"]

class ChatRequest(BaseModel):
    type: Literal["chat"]
    message: str

class SignalRequest(BaseModel):
    # the frame exactly as received, relayed without re-encoding
    raw: str


ActionRequest = Annotated[
    Union[ChangeUsernameRequest, CreateRoomRequest, JoinRoomRequest, LeaveRoomRequest],
    Field(discriminator="action"),
]
_action_adapter = TypeAdapter(ActionRequest)

Request = Union[ChangeUsernameRequest, CreateRoomRequest, JoinRoomRequest, LeaveRoomRequest, ChatRequest, SignalRequest]


def decode_request(raw: str) -> Optional[Request]:
    """Decode one inbound frame into a request.

    ``action`` wins over signaling keys, which win over ``type``. Returns None for a
    JSON object carrying none of them; raises DecodeError for anything malformed.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeError(f"frame is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"frame is a JSON {type(data).__name__}, expected an object")

    try:
        if "action" in data:
            return _action_adapter.validate_python(data)
        if any(key in data for key in SIGNAL_KEYS):
            return SignalRequest(raw=raw)
        if data.get("type") == "chat":
            return ChatRequest.model_validate(data)
    except ValidationError as e:
        raise DecodeError(str(e)) from e
    return None


# Server -> client

class HistoryEntry(BaseModel):
    username: str
    message: str
    timestamp: int

class RoomListPush(BaseModel):
    type: Literal["roomList"] = "roomList"
    rooms: List[str]

class UserListPush(BaseModel):
    type: Literal["updateUserList"] = "updateUserList"
    users: List[str]

class NotificationPush(BaseModel):
    type: Literal["notification"] = "notification"
    message: str

class ChatPush(BaseModel):
    type: Literal["chat"] = "chat"
    username: str
    message: str

class ChatHistoryPush(BaseModel):
    type: Literal["chatHistory"] = "chatHistory"
    messages: List[HistoryEntry]
