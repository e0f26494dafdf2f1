"""
Executes lifecycle effects after the store transaction has committed.

Broadcast and push failures are logged and swallowed: they are a
best-effort side channel and never change the outcome already reported
to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from dispatch.domain.effects import Broadcast, Effect, Notification
from dispatch.domain.errors import DeliveryError
from dispatch.infrastructure.notifier import Notifier

logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    async def broadcast(self, scope: str, event: str, payload: dict[str, Any]) -> Any: ...


class EffectDispatcher:
    def __init__(self, broadcaster: Broadcaster, notifier: Notifier):
        self.broadcaster = broadcaster
        self.notifier = notifier

    async def dispatch(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            try:
                if isinstance(effect, Broadcast):
                    await self.broadcaster.broadcast(
                        effect.scope, effect.event, effect.payload
                    )
                elif isinstance(effect, Notification):
                    await self.notifier.send(effect.token, effect.title, effect.body)
            except DeliveryError as exc:
                logger.warning("Notification delivery failed: %s", exc)
            except Exception:
                logger.exception("Failed to dispatch %r", effect)
