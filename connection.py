import asyncio
import itertools
import random
from typing import Optional

from pydantic import BaseModel

from logging_config import get_logger

logger = get_logger(__name__)

_connection_ids = itertools.count(1)


def default_display_name() -> str:
    return f"User{random.randint(0, 999)}"


class Connection:
    """One client stream plus its presence state.

    ``display_name`` and ``current_room`` are only changed by events from this
    connection's own stream. Outbound frames go through ``outbox`` and are written
    by ``pump`` in FIFO order, so ``send`` never waits on the network.
    """

    def __init__(self, transport, display_name: Optional[str] = None):
        self.id = next(_connection_ids)
        self.transport = transport
        self.display_name = display_name or default_display_name()
        self.current_room: Optional[str] = None
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def __repr__(self):
        return f"<Connection {self.id} {self.display_name!r} room={self.current_room!r}>"

    def send(self, push: BaseModel):
        self.send_text(push.model_dump_json())

    def send_text(self, text: str):
        if self.closed:
            return
        self.outbox.put_nowait(text)

    def close(self):
        """Stop accepting frames; already queued frames are still flushed by ``pump``."""
        if self.closed:
            return
        self.closed = True
        self.outbox.put_nowait(None)

    async def pump(self):
        while True:
            text = await self.outbox.get()
            if text is None:
                break
            try:
                await self.transport.send_text(text)
            except Exception as e:
                logger.debug(f"Send to connection {self.id} failed, dropping its outbox: {e}")
                self.closed = True
                break
