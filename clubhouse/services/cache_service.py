"""Redis service for realtime chat fan-out."""

import json
import logging
from typing import Optional, Any
import redis

from clubhouse.core.config import settings

logger = logging.getLogger("clubhouse.realtime")


def scope_channel(group_id: Optional[int]) -> str:
    """Pub/sub channel name for a chat scope."""
    suffix = str(group_id) if group_id is not None else "global"
    return f"{settings.REALTIME_CHANNEL_PREFIX}:{suffix}"


class CacheService:
    """Redis-backed pub/sub service."""

    def __init__(self):
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                max_connections=100,
            )
        return self._client

    def publish(self, channel: str, message: str) -> None:
        """Publish a message to a Redis channel."""
        try:
            self.client.publish(channel, message)
        except redis.RedisError as e:
            # realtime delivery is best effort; the row is already stored
            logger.warning("publish to %s failed: %s", channel, e)

    def publish_event(self, group_id: Optional[int], event: str, payload: Any) -> None:
        """Serialize and publish a chat event to its scope's channel."""
        self.publish(
            scope_channel(group_id),
            json.dumps({"event": event, "data": payload}, default=str),
        )

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return self.client.ping()
        except redis.RedisError:
            return False


cache_service = CacheService()
