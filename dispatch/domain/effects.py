"""
Side-effect values produced by the lifecycle engine.

Lifecycle operations never talk to sockets or push services directly.
They return an ``Outcome`` whose ``effects`` list is executed by
``EffectDispatcher`` once the store transaction has committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

AVAILABLE_DRIVERS_SCOPE = "available-drivers"


def booking_scope(booking_id: int) -> str:
    return f"booking:{booking_id}"


@dataclass(frozen=True)
class Broadcast:
    scope: str
    event: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class Notification:
    token: str
    title: str
    body: str


Effect = Union[Broadcast, Notification]


@dataclass
class Outcome:
    """Result of a lifecycle operation: the committed state + what to emit."""

    booking: Any
    effects: list[Effect] = field(default_factory=list)

    @property
    def broadcasts(self) -> list[Broadcast]:
        return [e for e in self.effects if isinstance(e, Broadcast)]

    @property
    def notifications(self) -> list[Notification]:
        return [e for e in self.effects if isinstance(e, Notification)]
