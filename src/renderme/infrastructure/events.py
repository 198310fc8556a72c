from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import redis


logger = logging.getLogger("renderme.infrastructure.events")

CHANNEL_PREFIX = "renderme.events."


class _RedisPublisher:
    def __init__(self, url: str) -> None:
        self._url = url
        self._client: Optional[redis.Redis] = None
        self._connect()

    def _connect(self) -> None:
        try:
            client = redis.Redis.from_url(self._url, socket_timeout=0.5)
            client.ping()
            self._client = client
        except redis.RedisError as exc:
            logger.warning("redis_unavailable", extra={"reason": str(exc)})
            self._client = None

    def publish(self, channel: str, payload: Dict[str, Any]) -> bool:
        if not self._client:
            self._connect()
        if not self._client:
            return False
        try:
            self._client.publish(channel, json.dumps(payload, ensure_ascii=False, default=str))
            return True
        except redis.RedisError as exc:
            logger.warning("redis_publish_failed", extra={"channel": channel, "reason": str(exc)})
            self._client = None
            return False


_publisher: Optional[_RedisPublisher] = None


def _get_publisher() -> Optional[_RedisPublisher]:
    global _publisher
    if _publisher is not None:
        return _publisher
    url = os.getenv("REDIS_URL")
    if not url:
        return None
    _publisher = _RedisPublisher(url)
    return _publisher


def publish_event(event_type: str, payload: Dict[str, Any]) -> bool:
    """Best-effort publish to ``renderme.events.<event_type>``; False when nothing was sent."""
    publisher = _get_publisher()
    if not publisher:
        return False
    return publisher.publish(f"{CHANNEL_PREFIX}{event_type}", payload)


def reset_publisher() -> None:
    global _publisher
    _publisher = None
