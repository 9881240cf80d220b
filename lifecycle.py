from typing import Dict, List, Optional

from redis.exceptions import RedisError

from backend import RoomRegistration, call_with_retry
from connection import Connection
from constants import CHAT_ECHO_SENDER, CHAT_HISTORY_LIMIT
from directory import RoomDirectory
from presence import PresenceBroadcaster
from relay import MessageRelay
from schemas.messages import (
    ChangeUsernameRequest,
    ChatHistoryPush,
    ChatRequest,
    CreateRoomRequest,
    DecodeError,
    HistoryEntry,
    JoinRoomRequest,
    LeaveRoomRequest,
    NotificationPush,
    Request,
    RoomListPush,
    SignalRequest,
    decode_request,
)
from logging_config import get_logger

logger = get_logger(__name__)


class LifecycleController:
    """Entry point for connection open, frame and close events.

    Owns the room directory, the presence broadcaster and the relay, plus the set of
    open connections (the audience of room-list announcements). Handlers only
    suspend on store calls; membership changes happen between those awaits.
    """

    def __init__(self, store, echo_sender: bool = CHAT_ECHO_SENDER, history_limit: int = CHAT_HISTORY_LIMIT):
        self.store = store
        self.history_limit = history_limit
        self.presence = PresenceBroadcaster()
        self.directory = RoomDirectory(store, self.presence)
        self.relay = MessageRelay(self.directory, store, echo_sender=echo_sender)
        self.connections: Dict[int, Connection] = {}
        # bumped whenever a room-list announcement starts
        self._announcements = 0

    def is_open(self, connection: Connection) -> bool:
        return not connection.closed and connection.id in self.connections

    async def connect(self, connection: Connection):
        # re-read while announcements start meanwhile; theirs may be newer than this snapshot
        while True:
            announcements = self._announcements
            rooms = await self._room_names()
            if announcements == self._announcements:
                break
        if connection.closed:
            return
        # registered only after the read, so later announcements arrive after this snapshot
        self.connections[connection.id] = connection
        connection.send(RoomListPush(rooms=rooms))
        logger.info(f"Connection {connection.id} opened as {connection.display_name} ({len(self.connections)} open)")

    def disconnect(self, connection: Connection):
        if self.connections.pop(connection.id, None) is None:
            return
        self.directory.leave(connection)
        connection.close()
        logger.info(f"Connection {connection.id} ({connection.display_name}) closed ({len(self.connections)} open)")

    async def handle_frame(self, connection: Connection, raw: str):
        try:
            request = decode_request(raw)
        except DecodeError as e:
            logger.warning(f"Malformed frame from connection {connection.id} dropped: {e}")
            connection.send(NotificationPush(message="Malformed message ignored."))
            return
        if request is None:
            logger.debug(f"Frame from connection {connection.id} matched no request type, dropped")
            return

        try:
            await self.dispatch(connection, request)
        except Exception as e:
            logger.error(f"Error handling {type(request).__name__} from connection {connection.id}: {e}", exc_info=True)

    async def dispatch(self, connection: Connection, request: Request):
        if isinstance(request, ChangeUsernameRequest):
            self.directory.rename(connection, request.username)
        elif isinstance(request, CreateRoomRequest):
            await self.create_room(request.room, requester=connection)
        elif isinstance(request, JoinRoomRequest):
            await self.join_room(connection, request.room)
        elif isinstance(request, LeaveRoomRequest):
            self.directory.leave(connection)
        elif isinstance(request, ChatRequest):
            await self.relay.relay_chat(connection, request.message)
        elif isinstance(request, SignalRequest):
            self.relay.relay_signal(connection, request.raw)

    async def create_room(self, name: str, requester: Optional[Connection] = None) -> Optional[RoomRegistration]:
        """Create ``name`` without joining it.

        Returns None when the store could not register the room; the live entry
        exists either way.
        """
        self.directory.ensure_room(name)
        registration = await self._register(name)

        if registration is None:
            message = f"Could not create room '{name}'."
        elif registration is RoomRegistration.CREATED:
            message = f"Room '{name}' created."
        else:
            message = f"Room '{name}' already exists."
        if requester is not None and self.is_open(requester):
            requester.send(NotificationPush(message=message))

        if registration is RoomRegistration.CREATED:
            await self.announce_rooms()
        return registration

    async def join_room(self, connection: Connection, name: str):
        # first reference to a room registers it, same as an explicit create
        if await self._register(name) is RoomRegistration.CREATED:
            await self.announce_rooms()
        history = await self._history(name)

        if not self.is_open(connection):
            logger.debug(f"Connection {connection.id} closed before joining room {name}")
            return
        connection.send(ChatHistoryPush(messages=history))
        self.directory.join(connection, name)

    async def announce_rooms(self):
        """Push the registry's room list to every open connection."""
        self._announcements += 1
        push = RoomListPush(rooms=await self._room_names())
        audience = list(self.connections.values())
        for connection in audience:
            connection.send(push)
        logger.debug(f"Announced {len(push.rooms)} rooms to {len(audience)} connections")

    async def _register(self, name: str) -> Optional[RoomRegistration]:
        try:
            return await self.store.register_room(name)
        except RedisError as e:
            logger.warning(f"Could not register room {name}: {e}")
            return None

    async def _room_names(self) -> List[str]:
        try:
            return await call_with_retry(self.directory.list_room_names)
        except RedisError as e:
            logger.warning(f"Could not read the room registry: {e}")
            return []

    async def _history(self, name: str) -> List[HistoryEntry]:
        try:
            return await call_with_retry(self.store.history_of, name, self.history_limit)
        except RedisError as e:
            logger.warning(f"Could not read history of room {name}: {e}")
            return []
