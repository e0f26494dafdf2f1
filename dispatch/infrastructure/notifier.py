"""
Push-notification delivery.

``FirebaseNotifier`` sends through Firebase Cloud Messaging with the
firebase-admin SDK.  The SDK call is blocking, so it runs in a worker
thread; a slow delivery only holds up the handler that issued it.
``LoggingNotifier`` is used when no service-account credentials are
configured (local development, tests).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from dispatch.config import settings
from dispatch.domain.errors import DeliveryError

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def send(self, token: str, title: str, body: str) -> None: ...


class LoggingNotifier(Notifier):
    async def send(self, token: str, title: str, body: str) -> None:
        logger.info("Push (not delivered): token=%s... %s: %s", token[:8], title, body)


class FirebaseNotifier(Notifier):
    def __init__(self, credentials_path: str):
        try:
            self.app = firebase_admin.get_app()
        except ValueError:
            self.app = firebase_admin.initialize_app(
                credentials.Certificate(credentials_path)
            )

    async def send(self, token: str, title: str, body: str) -> None:
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            token=token,
        )
        try:
            message_id = await asyncio.to_thread(messaging.send, message, app=self.app)
        except (exceptions.FirebaseError, ValueError) as exc:
            raise DeliveryError(str(exc)) from exc
        logger.debug("Notification sent: %s", message_id)


def build_notifier() -> Notifier:
    if settings.firebase_credentials_path:
        return FirebaseNotifier(settings.firebase_credentials_path)
    return LoggingNotifier()
