from typing import Dict, List, Optional

from connection import Connection
from presence import PresenceBroadcaster
from logging_config import get_logger

logger = get_logger(__name__)


class RoomDirectory:
    """Live membership of every room, keyed by room name.

    Only this class mutates the member sets and ``Connection.current_room``.
    All mutations are synchronous, so on a single event loop no other handler
    can observe a half-applied join or leave.
    """

    def __init__(self, store, presence: PresenceBroadcaster):
        self.store = store
        self.presence = presence
        # room name -> {connection id: connection}, in join order
        self._rooms: Dict[str, Dict[int, Connection]] = {}

    def ensure_room(self, name: str) -> bool:
        """Create the live entry for ``name``; returns False if it already existed."""
        if name in self._rooms:
            return False
        self._rooms[name] = {}
        logger.debug(f"Room {name} added to the live directory")
        return True

    def has_room(self, name: str) -> bool:
        return name in self._rooms

    def members(self, name: str) -> List[Connection]:
        return list(self._rooms.get(name, {}).values())

    def live_rooms(self) -> List[str]:
        return list(self._rooms)

    def join(self, connection: Connection, name: str):
        self.leave(connection)
        self.ensure_room(name)
        self._rooms[name][connection.id] = connection
        connection.current_room = name
        logger.info(f"Connection {connection.id} ({connection.display_name}) joined room {name}")
        self.presence.on_member_joined(name, connection, self.members(name))

    def leave(self, connection: Connection) -> Optional[str]:
        room = connection.current_room
        if room is None:
            return None
        self._rooms.get(room, {}).pop(connection.id, None)
        connection.current_room = None
        logger.info(f"Connection {connection.id} ({connection.display_name}) left room {room}")
        self.presence.on_member_left(room, connection, self.members(room))
        return room

    def rename(self, connection: Connection, display_name: str):
        old_name, connection.display_name = connection.display_name, display_name
        logger.info(f"Connection {connection.id} renamed from {old_name} to {display_name}")
        if connection.current_room is not None:
            self.presence.on_membership_changed(connection.current_room, self.members(connection.current_room))

    async def list_room_names(self) -> List[str]:
        """Every registered room, including ones nobody is connected to."""
        return await self.store.list_rooms()
