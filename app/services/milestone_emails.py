# file: app/services/milestone_emails.py

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.models import EmailLog, Subscriber
from app.models.email import EmailResult, MilestoneRunResult
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_NAME = "Friend"


def milestone_window(now: datetime, days: int):
    """[midnight `days + 1` days ago, midnight `days` days ago)"""
    end = (now - timedelta(days=days)).replace(hour=0, minute=0, second=0, microsecond=0)
    return end - timedelta(days=1), end


class MilestoneEmailJob:
    """Sends the 7-day and 30-day emails once per subscriber."""

    def __init__(self, session_factory: async_sessionmaker, email_service: EmailService, send_delay_ms: int = 1000):
        self.session_factory = session_factory
        self.email_service = email_service
        self.send_delay = send_delay_ms / 1000

    async def was_email_sent(self, db, user_email: str, email_type: str) -> bool:
        result = await db.execute(
            select(EmailLog.id).where(EmailLog.user_email == user_email, EmailLog.email_type == email_type)
        )
        return result.first() is not None

    async def log_email_sent(self, db, user_email: str, email_type: str, result: EmailResult):
        db.add(EmailLog(
            user_email=user_email,
            email_type=email_type,
            success=result.success,
            error_message=result.error,
            sent_at=datetime.now(),
        ))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Email log for {user_email} ({email_type}) already exists")

    async def _run_milestone(self, days: int, email_type: str, send, now: datetime) -> MilestoneRunResult:
        start, end = milestone_window(now, days)
        summary = MilestoneRunResult(email_type=email_type)
        async with self.session_factory() as db:
            result = await db.execute(
                select(Subscriber).where(Subscriber.created_at >= start, Subscriber.created_at < end)
            )
            subscribers = result.scalars().all()
            summary.found = len(subscribers)
            logger.info(f"Found {len(subscribers)} users who signed up {days} days ago")

            for subscriber in subscribers:
                if await self.was_email_sent(db, subscriber.email, email_type):
                    summary.skipped += 1
                    continue

                logger.info(f"Sending {email_type} email to: {subscriber.email}")
                outcome = await send(subscriber.email, subscriber.name or DEFAULT_SUBSCRIBER_NAME)
                await self.log_email_sent(db, subscriber.email, email_type, outcome)
                if outcome.success:
                    summary.sent += 1
                else:
                    summary.failed += 1
                    logger.error(f"Failed to send {email_type} email to {subscriber.email}: {outcome.error}")

                if self.send_delay:
                    await asyncio.sleep(self.send_delay)

        logger.info(f"{email_type} results: {summary.sent} sent, {summary.failed} failed, {summary.skipped} skipped")
        return summary

    async def send_seven_day_emails(self, now: Optional[datetime] = None) -> MilestoneRunResult:
        return await self._run_milestone(7, "7day", self.email_service.send_seven_day_email, now or datetime.now())

    async def send_thirty_day_emails(self, now: Optional[datetime] = None) -> MilestoneRunResult:
        return await self._run_milestone(30, "30day", self.email_service.send_thirty_day_email, now or datetime.now())

    async def run(self, now: Optional[datetime] = None):
        logger.info("Running milestone email jobs")
        seven = await self.send_seven_day_emails(now)
        thirty = await self.send_thirty_day_emails(now)
        logger.info("Milestone email jobs completed")
        return [seven, thirty]
