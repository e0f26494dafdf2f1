"""Effect execution: broadcasts and push notifications are best-effort."""

from unittest.mock import AsyncMock

import pytest

from dispatch.domain.effects import Broadcast, Notification
from dispatch.domain.errors import DeliveryError
from dispatch.services.dispatcher import EffectDispatcher
from tests.conftest import RecordingNotifier


class TestEffectDispatcher:
    @pytest.mark.asyncio
    async def test_executes_effects_in_order(self):
        broadcaster = AsyncMock()
        notifier = RecordingNotifier()
        dispatcher = EffectDispatcher(broadcaster, notifier)

        await dispatcher.dispatch(
            [
                Broadcast("booking:1", "booking-assigned", {"bookingId": 1}),
                Notification("tok", "Ambulance Alert", "An ambulance has been assigned to you"),
            ]
        )

        broadcaster.broadcast.assert_awaited_once_with(
            "booking:1", "booking-assigned", {"bookingId": 1}
        )
        assert notifier.sent == [
            ("tok", "Ambulance Alert", "An ambulance has been assigned to you")
        ]

    @pytest.mark.asyncio
    async def test_delivery_error_is_swallowed(self):
        broadcaster = AsyncMock()
        notifier = AsyncMock()
        notifier.send = AsyncMock(side_effect=DeliveryError("invalid registration token"))
        dispatcher = EffectDispatcher(broadcaster, notifier)

        await dispatcher.dispatch(
            [
                Notification("bad", "Ambulance Alert", "The ambulance is on its way"),
                Broadcast("booking:1", "status-update", {"status": "en-route"}),
            ]
        )

        broadcaster.broadcast.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_broadcast_failure_does_not_block_notifications(self):
        broadcaster = AsyncMock()
        broadcaster.broadcast = AsyncMock(side_effect=ConnectionError("redis down"))
        notifier = RecordingNotifier()
        dispatcher = EffectDispatcher(broadcaster, notifier)

        await dispatcher.dispatch(
            [
                Broadcast("booking:1", "status-update", {"status": "arrived"}),
                Notification("tok", "Ambulance Alert", "The ambulance has arrived at your location"),
            ]
        )

        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_no_effects(self):
        broadcaster = AsyncMock()
        dispatcher = EffectDispatcher(broadcaster, RecordingNotifier())
        await dispatcher.dispatch([])
        broadcaster.broadcast.assert_not_awaited()
