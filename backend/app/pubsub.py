from __future__ import annotations

import json
import logging
import os
from contextlib import suppress
from datetime import date, datetime, time
from typing import Any, AsyncIterator
from uuid import UUID

import redis.asyncio as redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
_redis = None

logger = logging.getLogger(__name__)


async def get_redis():
    global _redis
    if _redis is None:
        if os.getenv("TESTING") == "1":
            from fakeredis import aioredis
            _redis = aioredis.FakeRedis()
        else:
            _redis = redis.from_url(REDIS_URL)
    return _redis


def _json_default(value: Any) -> Any:
    # purpose: convert temporal values and ids to strings for event payloads
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _serialize_event(event: dict[str, Any]) -> str:
    return json.dumps(event, default=_json_default)


def availability_channel(mentor_id: str | UUID) -> str:
    return f"availability:{mentor_id}"


async def publish_availability_event(mentor_id: str | UUID, event: dict[str, Any]) -> None:
    """Tell listeners that a mentor's bookable occurrences changed.

    Subscribers re-fetch on receipt; the event carries no authoritative state, so a
    failed publish is logged and otherwise ignored.
    """

    try:
        r = await get_redis()
        await r.publish(availability_channel(mentor_id), _serialize_event(event))
    except (redis.RedisError, OSError, RuntimeError) as exc:
        logger.warning("availability event for mentor %s not published: %s", mentor_id, exc)


async def iter_availability_events(mentor_id: str | UUID) -> AsyncIterator[str]:
    """Yield availability invalidation messages for one mentor."""

    r = await get_redis()
    channel = availability_channel(mentor_id)
    pubsub = r.pubsub()
    await pubsub.subscribe(channel)
    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            data = message.get("data")
            if isinstance(data, bytes):
                yield data.decode()
            else:
                yield str(data)
    finally:
        with suppress(Exception):
            await pubsub.unsubscribe(channel)
        with suppress(AttributeError):
            await pubsub.close()
