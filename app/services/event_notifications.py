# file: app/services/event_notifications.py

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional

import pytz
from firebase_admin import messaging
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.models import EventSubscription, ScheduledNotification
from app.models.events import (
    EventSubscriptionRequest, EventSubscriptionResult, EventUnsubscribeRequest, EventUnsubscribeResult,
    ReminderRunResult,
)

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(hours=2)
CONFIRMATION_TITLE = "🔔 SantVaani Notification Active!"
_TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p", "%I %p")

EVENT_EMOJI = {
    "bhagwad-katha": "🕉️",
    "kirtan": "🎵",
    "bhandara": "🍽️",
    "satsang": "🧘",
}


class InvalidEventTimeError(ValueError):
    pass


def event_start_time(event_time: str) -> str:
    """'10:00 - 19:00' -> '10:00'"""
    return event_time.split(" - ")[0].strip() if " - " in event_time else event_time.strip()


def parse_event_start(event_date: str, event_time: str) -> datetime:
    try:
        day = date.fromisoformat(event_date.strip())
    except ValueError:
        raise InvalidEventTimeError(f"Invalid event date '{event_date}', expected YYYY-MM-DD")

    start = event_start_time(event_time)
    for fmt in _TIME_FORMATS:
        try:
            return datetime.combine(day, datetime.strptime(start.upper(), fmt).time())
        except ValueError:
            continue
    raise InvalidEventTimeError(f"Invalid event time '{event_time}'")


def build_confirmation_body(title: str, event_type: Optional[str], event_date: str, event_time: str) -> str:
    messages = {
        "bhagwad-katha": (
            f'🕉️ धन्यवाद! आपने "{title}" के लिए notification चालू की है। श्रीमद भागवत कथा के दिन आपको '
            f"reminder मिलेगा। 📅 {event_date} को {event_time} बजे तैयार रहें। जय श्री कृष्ण! 🙏"
        ),
        "kirtan": (
            f'🎵 बहुत अच्छा! "{title}" कीर्तन के लिए notification सक्रिय हो गई। भजन-कीर्तन के दिन आपको '
            f"याद दिला देंगे। 📅 {event_date} को {event_time} बजे। राधे राधे! 🎶"
        ),
        "bhandara": (
            f'🍽️ शुक्रिया! "{title}" भंडारे के लिए notification लगाई गई है। प्रसाद वितरण के दिन reminder '
            f"मिलेगा। 📅 {event_date} को {event_time} बजे। जय माता दी! 🙏"
        ),
        "satsang": (
            f'🧘 उत्तम! "{title}" सत्संग के लिए notification चालू है। आध्यात्मिक चर्चा के दिन आपको सूचना '
            f"मिलेगी। 📅 {event_date} को {event_time} बजे। हरि ॐ! ✨"
        ),
    }
    return messages.get(
        event_type or "",
        f'🔔 Thank you! You will be notified about "{title}" on {event_date} at {event_time}. 🙏',
    )


def build_reminder(notification: ScheduledNotification) -> Dict[str, str]:
    emoji = EVENT_EMOJI.get(notification.event_type or "", "🔔")
    where = ", ".join(p for p in (notification.event_location, notification.event_city) if p)
    body = f'"{notification.event_title}" starts at {event_start_time(notification.event_time)} today'
    if where:
        body += f" at {where}"
    return {"title": f"{emoji} Event Reminder: {notification.event_title}", "body": body + ". 🙏"}


def build_push(token: str, title: str, body: str, data: Dict[str, str]) -> messaging.Message:
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=title, body=body),
        data=data,
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(sound="default", priority="high"),
        ),
        apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(sound="default"))),
    )


class EventNotificationService:
    """
    Per-event subscriptions: a confirmation push on subscribe and one reminder
    REMINDER_LEAD before the event starts. Times are naive wall-clock times in
    the scheduler timezone.
    """

    def __init__(self, session_factory: async_sessionmaker, timezone: str = "Asia/Kolkata",
                 reminder_lead: timedelta = REMINDER_LEAD):
        self.session_factory = session_factory
        self.tz = pytz.timezone(timezone)
        self.reminder_lead = reminder_lead

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)

    def reminder_time(self, start: datetime, now: datetime) -> Optional[datetime]:
        """None when the event has already started."""
        if start <= now:
            return None
        return max(start - self.reminder_lead, now)

    async def send_confirmation(self, request: EventSubscriptionRequest) -> bool:
        message = build_push(
            request.fcm_token,
            CONFIRMATION_TITLE,
            build_confirmation_body(request.event_title, request.event_type, request.event_date, request.event_time),
            {
                "type": "event_subscription_confirmation",
                "eventId": str(request.event_id),
                "eventTitle": request.event_title,
                "eventDate": request.event_date,
                "eventTime": request.event_time,
            },
        )
        try:
            await asyncio.to_thread(messaging.send, message)
            logger.info("Immediate confirmation notification sent successfully")
            return True
        except Exception as e:
            # the subscription stands even if the confirmation push fails
            logger.error(f"Error sending immediate notification: {e}")
            return False

    async def subscribe(self, request: EventSubscriptionRequest, now: Optional[datetime] = None) -> EventSubscriptionResult:
        now = now or self.now()
        start = parse_event_start(request.event_date, request.event_time)
        event_id = str(request.event_id)

        async with self.session_factory() as db:
            result = await db.execute(
                select(EventSubscription).where(
                    EventSubscription.event_id == event_id,
                    EventSubscription.fcm_token == request.fcm_token,
                    EventSubscription.is_active.is_(True),
                )
            )
            existing = result.scalars().first()
            if existing:
                return EventSubscriptionResult(
                    success=True,
                    message="Already subscribed to event notifications",
                    subscription_id=existing.id,
                )

            subscription = EventSubscription(
                event_id=event_id,
                user_id=request.user_id,
                user_email=request.user_email,
                fcm_token=request.fcm_token,
                event_title=request.event_title,
                event_date=request.event_date,
                event_time=request.event_time,
                event_location=request.event_location,
                event_city=request.event_city,
                event_type=request.event_type,
                is_active=True,
                subscribed_at=now,
            )
            db.add(subscription)
            await db.flush()

            reminder_at = self.reminder_time(start, now)
            if reminder_at is not None:
                db.add(ScheduledNotification(
                    subscription_id=subscription.id,
                    event_id=event_id,
                    user_id=request.user_id,
                    fcm_token=request.fcm_token,
                    event_title=request.event_title,
                    event_date=request.event_date,
                    event_time=request.event_time,
                    event_location=request.event_location,
                    event_city=request.event_city,
                    event_type=request.event_type,
                    scheduled_for=reminder_at,
                    notification_type="event_reminder",
                    is_sent=False,
                    created_at=now,
                ))
                logger.info(f"Notification scheduled for {reminder_at} for event \"{request.event_title}\"")
            else:
                logger.warning(f"Event \"{request.event_title}\" has already started, no reminder scheduled")
            await db.commit()
            subscription_id = subscription.id

        confirmation_sent = await self.send_confirmation(request)
        return EventSubscriptionResult(
            success=True,
            message="Successfully subscribed to event notifications",
            subscription_id=subscription_id,
            reminder_at=reminder_at,
            confirmation_sent=confirmation_sent,
        )

    async def unsubscribe(self, request: EventUnsubscribeRequest) -> EventUnsubscribeResult:
        if not request.user_id and not request.fcm_token:
            raise ValueError("userId or fcmToken is required")

        conditions = [EventSubscription.event_id == str(request.event_id), EventSubscription.is_active.is_(True)]
        if request.user_id:
            conditions.append(EventSubscription.user_id == request.user_id)
        else:
            conditions.append(EventSubscription.fcm_token == request.fcm_token)

        async with self.session_factory() as db:
            result = await db.execute(select(EventSubscription.id).where(*conditions))
            ids = list(result.scalars().all())
            if ids:
                await db.execute(update(EventSubscription).where(EventSubscription.id.in_(ids)).values(is_active=False))
                await db.execute(
                    delete(ScheduledNotification).where(
                        ScheduledNotification.subscription_id.in_(ids),
                        ScheduledNotification.is_sent.is_(False),
                    )
                )
                await db.commit()

        logger.info(f"Deactivated {len(ids)} subscription(s) for event {request.event_id}")
        return EventUnsubscribeResult(
            success=True,
            message="Successfully unsubscribed from event notifications",
            deactivated=len(ids),
        )

    async def send_due_reminders(self, now: Optional[datetime] = None) -> ReminderRunResult:
        """Sends every unsent reminder whose time has come. Each is attempted once."""
        now = now or self.now()
        summary = ReminderRunResult()
        async with self.session_factory() as db:
            result = await db.execute(
                select(ScheduledNotification)
                .where(ScheduledNotification.is_sent.is_(False), ScheduledNotification.scheduled_for <= now)
                .order_by(ScheduledNotification.scheduled_for)
            )
            due = result.scalars().all()
            summary.due = len(due)

            for notification in due:
                notification.is_sent = True
                notification.sent_at = now
                try:
                    start = parse_event_start(notification.event_date, notification.event_time)
                except InvalidEventTimeError:
                    start = None
                if start is None or start <= now:
                    notification.error_message = "Event already started"
                    summary.expired += 1
                    continue

                copy = build_reminder(notification)
                message = build_push(notification.fcm_token, copy["title"], copy["body"], {
                    "type": notification.notification_type,
                    "eventId": notification.event_id,
                    "eventTitle": notification.event_title,
                    "eventDate": notification.event_date,
                    "eventTime": notification.event_time,
                })
                try:
                    await asyncio.to_thread(messaging.send, message)
                    summary.sent += 1
                except Exception as e:
                    logger.error(f"Event reminder {notification.id} failed: {e}")
                    notification.error_message = str(e)
                    summary.failed += 1
                    if isinstance(e, messaging.UnregisteredError) and notification.subscription_id:
                        await db.execute(
                            update(EventSubscription)
                            .where(EventSubscription.id == notification.subscription_id)
                            .values(is_active=False)
                        )
            await db.commit()

        if summary.due:
            logger.info(
                f"Event reminders: {summary.sent} sent, {summary.failed} failed, {summary.expired} expired"
            )
        return summary
