from redis.exceptions import RedisError

from connection import Connection
from directory import RoomDirectory
from schemas.messages import ChatPush
from logging_config import get_logger

logger = get_logger(__name__)


class MessageRelay:
    """Routes chat and signaling frames to the sender's room.

    ``echo_sender`` selects the chat echo policy for the whole process: when False
    the sender is left out (clients echo locally), when True every member,
    sender included, gets the server's copy. Signaling never echoes.
    """

    def __init__(self, directory: RoomDirectory, store, echo_sender: bool = False):
        self.directory = directory
        self.store = store
        self.echo_sender = echo_sender

    async def relay_chat(self, sender: Connection, text: str):
        room = sender.current_room
        if room is None:
            logger.debug(f"Dropping chat from connection {sender.id}: not in a room")
            return

        # author is captured now; a rename while the store call is pending doesn't change it
        author = sender.display_name
        try:
            # appends are not idempotent, never retried
            await self.store.append_message(room, author, text)
        except RedisError as e:
            logger.warning(f"Could not persist chat message in room {room}, delivering live only: {e}")

        push = ChatPush(username=author, message=text)
        recipients = [
            member for member in self.directory.members(room)
            if self.echo_sender or member is not sender
        ]
        for member in recipients:
            member.send(push)
        logger.debug(f"Relayed chat from {author} to {len(recipients)} members of room {room}")

    def relay_signal(self, sender: Connection, raw: str):
        room = sender.current_room
        if room is None:
            logger.debug(f"Dropping signaling frame from connection {sender.id}: not in a room")
            return

        peers = [member for member in self.directory.members(room) if member is not sender]
        for peer in peers:
            peer.send_text(raw)
        logger.debug(f"Relayed signaling frame from connection {sender.id} to {len(peers)} peers in room {room}")
