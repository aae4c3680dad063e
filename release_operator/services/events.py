"""
Reconciliation events on Redis Streams (optional — graceful degradation).

Every release transition is appended to ``release:events:<release>`` and
broadcast on the ``release:events`` channel. With no REDIS_URL, or when
Redis is unreachable, publishing is a no-op and reconciliation is unaffected.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis

from release_operator.config import settings

logger = logging.getLogger("events")

STREAM_MAXLEN = 100
CHANNEL = "release:events"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class EventPublisher:

    def __init__(self, redis_url: str = settings.REDIS_URL, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self._client = client

    def _get_redis(self) -> Optional[redis.Redis]:
        """Lazy-init Redis client. Returns None if unavailable."""
        if self._client is not None:
            return self._client
        if not self.redis_url:
            return None
        try:
            self._client = redis.Redis.from_url(self.redis_url, decode_responses=True)
            self._client.ping()
            logger.info(f"Redis connected: {self.redis_url}")
            return self._client
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis unavailable (non-fatal): {e}")
            self._client = None
            return None

    def publish(self, release: str, event_type: str, message: str):
        r = self._get_redis()
        if not r:
            return
        event = {
            "release": release,
            "type": event_type,
            "message": message,
            "timestamp": _now(),
        }
        try:
            r.xadd(f"release:events:{release}", event, maxlen=STREAM_MAXLEN)
            r.publish(CHANNEL, json.dumps(event))
        except redis.RedisError as e:
            logger.debug(f"Redis publish failed (non-fatal): {e}")
