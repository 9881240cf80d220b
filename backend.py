import time
from enum import Enum
from typing import Dict, List

import redis.asyncio as redis
from redis.exceptions import RedisError
from pydantic import ValidationError

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB, REDIS_KEY_PREFIX
from redis_keys import REDIS_ROOM_SEQ_KEY, REDIS_ROOM_IDS_KEY, REDIS_HISTORY_KEY
from schemas.messages import HistoryEntry
from logging_config import get_logger

logger = get_logger(__name__)


class RoomRegistration(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "alreadyExists"


class RedisBackend:
    """Durable room registry and chat history kept in Redis.

    Every method is a coroutine and may raise ``redis.exceptions.RedisError``;
    callers decide how to recover.
    """

    def __init__(self, redis_client: redis.Redis = None, prefix: str = REDIS_KEY_PREFIX):
        if redis_client is None:
            redis_client = redis.Redis(
                host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, db=REDIS_DB, decode_responses=True
            )
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
        self.redis_client = redis_client
        self.prefix = prefix
        # room name -> last assigned timestamp, keeps history timestamps non-decreasing
        self._last_timestamps: Dict[str, int] = {}

    async def ping(self) -> bool:
        return bool(await self.redis_client.ping())

    async def close(self):
        await self.redis_client.aclose()

    async def register_room(self, name: str) -> RoomRegistration:
        """Register ``name`` once; HSETNX makes concurrent registrations collapse to one entry.

        The HSETNX is retried once. The fresh registry id doubles as a token: when the
        name is found holding this call's id, an earlier attempt whose reply was lost
        did the write, and the room counts as created here.
        """
        ids_key = REDIS_ROOM_IDS_KEY.format(prefix=self.prefix)
        if await self.redis_client.hexists(ids_key, name):
            logger.debug(f"Room {name} already registered")
            return RoomRegistration.ALREADY_EXISTS

        room_id = await self.redis_client.incr(REDIS_ROOM_SEQ_KEY.format(prefix=self.prefix))
        try:
            created = await self.redis_client.hsetnx(ids_key, name, room_id)
        except RedisError as e:
            logger.warning(f"Registering room {name} failed, retrying: {e}")
            created = await self.redis_client.hsetnx(ids_key, name, room_id)
            if not created:
                created = await self.redis_client.hget(ids_key, name) == str(room_id)

        if not created:
            logger.debug(f"Room {name} was registered concurrently, id {room_id} discarded")
            return RoomRegistration.ALREADY_EXISTS

        logger.info(f"Room {name} registered with id {room_id}")
        return RoomRegistration.CREATED

    async def list_rooms(self) -> List[str]:
        """All registered room names in registration order."""
        registry = await self.redis_client.hgetall(REDIS_ROOM_IDS_KEY.format(prefix=self.prefix))
        return [name for name, _ in sorted(registry.items(), key=lambda item: int(item[1]))]

    async def append_message(self, room: str, username: str, text: str) -> HistoryEntry:
        entry = HistoryEntry(username=username, message=text, timestamp=self._next_timestamp(room))
        key = REDIS_HISTORY_KEY.format(prefix=self.prefix, slug=room)
        length = await self.redis_client.rpush(key, entry.model_dump_json())
        logger.debug(f"Appended message to room {room} history ({length} entries)")
        return entry

    async def history_of(self, room: str, limit: int = 0) -> List[HistoryEntry]:
        """Messages of ``room`` oldest first; ``limit`` keeps only the newest entries."""
        key = REDIS_HISTORY_KEY.format(prefix=self.prefix, slug=room)
        start = -limit if limit > 0 else 0
        raw_entries = await self.redis_client.lrange(key, start, -1)

        history = []
        for raw in raw_entries:
            try:
                history.append(HistoryEntry.model_validate_json(raw))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable history entry in room {room}: {e}")
        return history

    def _next_timestamp(self, room: str) -> int:
        now = int(time.time() * 1000)
        timestamp = max(now, self._last_timestamps.get(room, 0))
        self._last_timestamps[room] = timestamp
        return timestamp


async def call_with_retry(operation, *args, attempts: int = 2):
    """Await ``operation(*args)``, retrying a failed store call once before giving up.

    Only for reads; writes handle their own retries (see ``RedisBackend.register_room``).
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation(*args)
        except RedisError as e:
            if attempt == attempts:
                raise
            name = getattr(operation, "__name__", repr(operation))
            logger.warning(f"Store call {name} failed (attempt {attempt}/{attempts}), retrying: {e}")
