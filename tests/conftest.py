import json
from collections import defaultdict

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from backend import RoomRegistration
from connection import Connection
from lifecycle import LifecycleController
from schemas.messages import HistoryEntry


class MemoryStore:
    """In-process stand-in for RedisBackend with injectable failures."""

    def __init__(self):
        self.rooms = {}
        self.history = defaultdict(list)
        # method name -> number of upcoming calls that raise
        self.failures = defaultdict(int)
        # method name -> number of upcoming calls that apply their write, then raise
        self.lost_replies = defaultdict(int)
        self._clock = 1_000

    def fail(self, method: str, times: int = 1):
        self.failures[method] += times

    def lose_reply(self, method: str, times: int = 1):
        self.lost_replies[method] += times

    def _maybe_fail(self, method: str):
        if self.failures[method] > 0:
            self.failures[method] -= 1
            raise RedisConnectionError(f"{method}: store unavailable")

    def _maybe_lose_reply(self, method: str):
        if self.lost_replies[method] > 0:
            self.lost_replies[method] -= 1
            raise RedisTimeoutError(f"{method}: reply lost")

    async def ping(self):
        return True

    async def close(self):
        pass

    async def register_room(self, name):
        self._maybe_fail("register_room")
        if name in self.rooms:
            return RoomRegistration.ALREADY_EXISTS
        self.rooms[name] = len(self.rooms) + 1
        return RoomRegistration.CREATED

    async def list_rooms(self):
        self._maybe_fail("list_rooms")
        return list(self.rooms)

    async def append_message(self, room, username, text):
        self._maybe_fail("append_message")
        self._clock += 1
        entry = HistoryEntry(username=username, message=text, timestamp=self._clock)
        self.history[room].append(entry)
        self._maybe_lose_reply("append_message")
        return entry

    async def history_of(self, room, limit=0):
        self._maybe_fail("history_of")
        entries = list(self.history.get(room, []))
        return entries[-limit:] if limit > 0 else entries


def drain(connection):
    """Pop every queued outbound frame of ``connection`` as decoded JSON."""
    frames = []
    while not connection.outbox.empty():
        text = connection.outbox.get_nowait()
        if text is not None:
            frames.append(json.loads(text))
    return frames


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def controller(store):
    return LifecycleController(store, echo_sender=False)


@pytest.fixture
def make_connection():
    def factory(display_name=None):
        return Connection(transport=None, display_name=display_name)
    return factory
