"""
Scope manager for live WebSocket connections.

A scope is a named broadcast destination (``available-drivers`` or
``booking:<id>``).  The manager owns both directions of the membership
relation and is its only writer:

* ``scope -> {connection ids}``
* ``connection id -> {scopes}``

Membership changes are serialised by one lock; deliveries to a scope are
serialised per scope, so events for a booking reach each member in the
order they were broadcast.  Nothing is queued for absent members.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ScopeManager:
    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._members: dict[str, set[str]] = {}
        self._scopes_of: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()
        self._send_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        self._total_connections = 0
        self._total_messages_sent = 0

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    async def register(self, connection: Connection) -> str:
        """Track an accepted connection; returns its id."""
        connection_id = uuid.uuid4().hex
        async with self._lock:
            self._connections[connection_id] = connection
            self._scopes_of[connection_id] = set()
            self._total_connections += 1
        return connection_id

    async def join(self, connection_id: str, scope: str) -> None:
        async with self._lock:
            if connection_id not in self._connections:
                return
            self._scopes_of[connection_id].add(scope)
            self._members.setdefault(scope, set()).add(connection_id)
        logger.debug("Connection %s joined %s", connection_id, scope)

    async def leave(self, connection_id: str, scope: str) -> None:
        async with self._lock:
            self._leave(connection_id, scope)

    async def disconnect(self, connection_id: str) -> None:
        """Drop every membership of the connection.  No other state changes."""
        async with self._lock:
            for scope in list(self._scopes_of.get(connection_id, ())):
                self._leave(connection_id, scope)
            self._scopes_of.pop(connection_id, None)
            self._connections.pop(connection_id, None)

    async def send(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        """Deliver to a single connection.  False if it is gone."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.send_json({"event": event, "data": payload})
        except Exception:
            logger.info("Dropping connection %s after failed send", connection_id)
            await self.disconnect(connection_id)
            return False
        self._total_messages_sent += 1
        return True

    async def broadcast(self, scope: str, event: str, payload: dict[str, Any]) -> int:
        """Deliver to every current member of *scope*.  Returns delivered count."""
        async with self._lock:
            if scope not in self._members:
                return 0
            send_lock = self._send_locks[scope]

        async with send_lock:
            async with self._lock:
                members = list(self._members.get(scope, ()))
            sent = 0
            for connection_id in members:
                if await self.send(connection_id, event, payload):
                    sent += 1

        async with self._lock:
            # The last member may have left while the lock was held.
            if (
                scope not in self._members
                and not send_lock.locked()
                and self._send_locks.get(scope) is send_lock
            ):
                del self._send_locks[scope]
        logger.debug("Broadcast %s to %s: %d recipient(s)", event, scope, sent)
        return sent

    def members(self, scope: str) -> set[str]:
        return set(self._members.get(scope, ()))

    def scopes_of(self, connection_id: str) -> set[str]:
        return set(self._scopes_of.get(connection_id, ()))

    def stats(self) -> dict[str, Any]:
        return {
            "active_connections": len(self._connections),
            "total_scopes": len(self._members),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "scope_sizes": {scope: len(m) for scope, m in self._members.items()},
        }

    def _leave(self, connection_id: str, scope: str) -> None:
        if connection_id in self._scopes_of:
            self._scopes_of[connection_id].discard(scope)
        members = self._members.get(scope)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._members[scope]
                send_lock = self._send_locks.get(scope)
                if send_lock is not None and not send_lock.locked():
                    del self._send_locks[scope]
