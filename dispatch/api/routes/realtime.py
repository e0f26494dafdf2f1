"""
Real-time channel
=================

WS /api/v1/ws?token=<jwt>

Messages in both directions are JSON objects ``{"event": ..., "data": ...}``.

Inbound: ``driver-availability``, ``join-booking``, ``accept-booking``,
``update-location``.

Outbound: ``new-booking``, ``booking-assigned``, ``status-update``,
``location-update`` (scope broadcasts) and ``availability-updated``,
``joined-booking``, ``booking-accepted``, ``booking-error``, ``error``
(replies to the sender).

Connections failing authentication are closed with code 1008.  Closing a
connection drops its scope memberships and nothing else; driver presence
is left as last announced.
"""

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch.api.dependencies import get_session_factory
from dispatch.domain.errors import Unauthorized
from dispatch.infrastructure.repositories import UserRepository
from dispatch.infrastructure.security import authenticate
from dispatch.realtime.handlers import RealtimeSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    token = websocket.query_params.get("token")
    try:
        async with session_factory() as session:
            identity = await authenticate(token, UserRepository(session))
    except Unauthorized as exc:
        logger.info("Rejected real-time connection: %s", exc.message)
        await websocket.close(code=1008)
        return

    await websocket.accept()
    scopes = websocket.app.state.scopes
    connection_id = await scopes.register(websocket)
    handler = RealtimeSession(
        connection_id,
        identity,
        scopes,
        websocket.app.state.dispatcher,
        session_factory,
    )
    logger.info(
        "User %s (%s) connected as %s",
        identity.user_id,
        identity.role.value,
        connection_id,
    )

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            text = frame.get("text")
            if text is None:
                await handler.reply(
                    "error", {"message": "Binary frames are not supported"}
                )
                continue
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                await handler.reply("error", {"message": "Malformed message"})
                continue
            await handler.handle(message)
    except WebSocketDisconnect:
        pass
    finally:
        await scopes.disconnect(connection_id)
        logger.info("Connection %s closed", connection_id)
