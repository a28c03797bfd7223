# file: app/services/push_dispatcher.py

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from firebase_admin import messaging

from app.models.notification import DispatchResult, NotificationStats, RegistrationResult, ScheduledNotificationInfo
from app.services.token_store import TokenStore

logger = logging.getLogger(__name__)

# FCM rejects multicast messages with more than 500 tokens
MULTICAST_BATCH_SIZE = 500


class InvalidTokenError(ValueError):
    pass


def _mask(token: str) -> str:
    return f"{token[:20]}..."


def _stringify(data: Optional[dict]) -> Dict[str, str]:
    """FCM data payloads only accept string values."""
    return {str(k): "" if v is None else str(v) for k, v in (data or {}).items()}


class NotificationDispatcher:
    """Broadcasts a notification to every registered device and prunes dead tokens."""

    def __init__(self, store: TokenStore, batch_size: int = MULTICAST_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    async def register(self, token: Optional[str], user_id: Optional[str] = None) -> RegistrationResult:
        if not token or not token.strip():
            raise InvalidTokenError("FCM token is required")
        token = token.strip()
        total = await self.store.add(token, user_id=user_id)
        logger.info(f"FCM token registered: {_mask(token)}")
        logger.info(f"Total registered tokens: {total}")
        return RegistrationResult(
            success=True,
            message="FCM token registered successfully",
            total_tokens=total,
        )

    def build_multicast(self, title: str, body: str, data: Dict[str, str], tokens: List[str]) -> messaging.MulticastMessage:
        return messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            data=data,
            tokens=tokens,
        )

    async def send_to_all(self, title: str, body: str, data: Optional[dict] = None) -> DispatchResult:
        tokens = await self.store.list()
        if not tokens:
            logger.warning("No FCM tokens registered")
            return DispatchResult(success=False, error="No tokens registered")

        payload = _stringify(data)
        payload["timestamp"] = datetime.now().isoformat()

        logger.info(f"Sending FCM notification to {len(tokens)} devices")
        logger.info(f"Title: {title}")
        logger.info(f"Body: {body}")

        success_count = 0
        failure_count = 0
        unregistered = []
        try:
            for start in range(0, len(tokens), self.batch_size):
                batch = tokens[start:start + self.batch_size]
                message = self.build_multicast(title, body, payload, batch)
                response = await asyncio.to_thread(messaging.send_each_for_multicast, message)
                success_count += response.success_count
                failure_count += response.failure_count
                for idx, resp in enumerate(response.responses):
                    if not resp.success and isinstance(resp.exception, messaging.UnregisteredError):
                        unregistered.append(batch[idx])
        except Exception as e:
            logger.exception(f"Error sending FCM notification: {e}")
            return DispatchResult(success=False, error=str(e))

        logger.info(f"Successfully sent: {success_count}")
        logger.info(f"Failed to send: {failure_count}")

        removed = 0
        if unregistered:
            for token in unregistered:
                logger.info(f"Removing invalid token: {_mask(token)}")
            removed = await self.store.remove_many(unregistered)

        return DispatchResult(
            success=True,
            success_count=success_count,
            failure_count=failure_count,
            removed_tokens=removed,
        )

    async def masked_tokens(self) -> List[str]:
        return [_mask(token) for token in await self.store.list()]

    async def stats(self, scheduled: List[ScheduledNotificationInfo]) -> NotificationStats:
        tokens = await self.masked_tokens()
        return NotificationStats(
            total_registered_tokens=len(tokens),
            registered_tokens=tokens,
            scheduled_notifications=scheduled,
        )
