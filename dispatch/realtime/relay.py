"""
Redis Pub/Sub relay for broadcasts.

With several API processes behind a load balancer, a rider and a driver
of the same booking may be connected to different processes.  In that
deployment every broadcast is published to one Redis channel, and each
process's subscriber hands it to its local ``ScopeManager``.  Delivery is
still fire-and-forget: nothing is stored for late joiners.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from dispatch.realtime.scopes import ScopeManager

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisBroadcastRelay:
    def __init__(self, redis: "Redis", scopes: ScopeManager, channel: str):
        self._redis = redis
        self._scopes = scopes
        self._channel = channel
        self._pubsub = None
        self._task: asyncio.Task | None = None
        self._running = False

    async def broadcast(self, scope: str, event: str, payload: dict[str, Any]) -> int:
        """Publish for every process; returns the number of subscribed processes."""
        message = json.dumps({"scope": scope, "event": event, "payload": payload})
        return await self._redis.publish(self._channel, message)

    async def start(self) -> None:
        if self._running:
            return
        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._running = True
        self._task = asyncio.create_task(self._listen())
        logger.info("Broadcast relay subscribed to %s", self._channel)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._pubsub:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
        logger.info("Broadcast relay stopped")

    async def _listen(self) -> None:
        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if message is None:
                    continue
                await self.deliver(message)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Broadcast relay error")
                await asyncio.sleep(1)

    async def deliver(self, message: dict[str, Any]) -> int:
        """Hand one Pub/Sub message to the local scope manager."""
        if message.get("type") != "message":
            return 0
        data = message.get("data", b"")
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            envelope = json.loads(data)
            scope, event, payload = (
                envelope["scope"],
                envelope["event"],
                envelope["payload"],
            )
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.warning("Ignoring malformed relay message: %r", data)
            return 0
        return await self._scopes.broadcast(scope, event, payload)
