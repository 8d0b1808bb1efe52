"""
Outbound notification collaborators.

The engine only needs ``notify(user_id, title, message)``; delivery (push,
SMS, e-mail) happens elsewhere.  Two backends are provided:

* ``LoggingNotifier`` -- writes the notification to the application log.
* ``RedisNotifier``   -- publishes a JSON payload on ``<prefix>:<user_id>``
  for a downstream delivery worker to consume.

Callers treat notifications as fire-and-forget; ReservationService catches
and logs any exception raised here.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def notify(self, user_id: int, title: str, message: str) -> None: ...


class LoggingNotifier(Notifier):
    async def notify(self, user_id: int, title: str, message: str) -> None:
        logger.info("Notify user=%d [%s] %s", user_id, title, message)


class RedisNotifier(Notifier):
    def __init__(self, client: aioredis.Redis, prefix: str = "notifications"):
        self.redis = client
        self.prefix = prefix

    def channel_for(self, user_id: int) -> str:
        return f"{self.prefix}:{user_id}"

    async def notify(self, user_id: int, title: str, message: str) -> None:
        payload = json.dumps(
            {"user_id": user_id, "title": title, "message": message}
        )
        await self.redis.publish(self.channel_for(user_id), payload)
