from typing import Iterable, List

from connection import Connection
from schemas.messages import NotificationPush, UserListPush
from logging_config import get_logger

logger = get_logger(__name__)


def roster_of(members: Iterable[Connection]) -> List[str]:
    return [member.display_name for member in members]


class PresenceBroadcaster:
    """Pushes a fresh roster to every member of a room after each membership change.

    There is no batching: every join, leave or rename costs one recomputation and
    one send per member.
    """

    def on_membership_changed(self, room: str, members: List[Connection]):
        push = UserListPush(users=roster_of(members))
        for member in members:
            member.send(push)
        logger.debug(f"Pushed roster of room {room} to {len(members)} members: {push.users}")

    def on_member_joined(self, room: str, connection: Connection, members: List[Connection]):
        self._notify_others(members, connection, f"{connection.display_name} joined the room")
        self.on_membership_changed(room, members)

    def on_member_left(self, room: str, connection: Connection, members: List[Connection]):
        self._notify_others(members, connection, f"{connection.display_name} left the room")
        self.on_membership_changed(room, members)

    def _notify_others(self, members: List[Connection], connection: Connection, message: str):
        push = NotificationPush(message=message)
        for member in members:
            if member is not connection:
                member.send(push)
