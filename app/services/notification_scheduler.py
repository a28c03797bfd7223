# file: app/services/notification_scheduler.py

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.models.notification import JobRunResult, NotificationMessage, ScheduledNotificationInfo
from app.models.panchang import PanchangSnapshot
from app.services.panchang_service import PanchangService
from app.services.push_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

FESTIVAL_LOOKAHEAD_DAYS = (1, 3)


class UnknownJobError(KeyError):
    pass


# --- MESSAGE BUILDERS ---
# Each builder is a pure function of the firing time and (optionally) today's Panchang.

def build_morning_message(now: datetime, snapshot: Optional[PanchangSnapshot]) -> NotificationMessage:
    data = {"url": "/daily-guide", "type": "morning-blessing", "time": "morning"}
    if snapshot is None:
        return NotificationMessage(
            title="🌅 Good Morning Blessing",
            body="Start your day with divine blessings. Check today's spiritual guidance.",
            data=data,
            timestamp=now,
        )

    data["tithi"] = snapshot.tithi.english
    if snapshot.is_auspicious_day:
        title = "🌅 Shubh Prabhat - An Auspicious Day"
        extra = " Today is auspicious for new beginnings."
    else:
        title = "🌅 Good Morning Blessing"
        extra = ""
    body = (
        f"Today is {snapshot.tithi.english} ({snapshot.tithi.name}), {snapshot.paksha}.{extra} "
        "Check today's spiritual guidance."
    )
    return NotificationMessage(title=title, body=body, data=data, timestamp=now)


def build_evening_message(now: datetime, snapshot: Optional[PanchangSnapshot] = None) -> NotificationMessage:
    return NotificationMessage(
        title="🌇 Evening Prayer Time",
        body="Join us for evening prayers and spiritual reflection.",
        data={"url": "/daily-guide", "type": "evening-prayer", "time": "evening"},
        timestamp=now,
    )


def build_weekly_message(now: datetime, snapshot: Optional[PanchangSnapshot]) -> NotificationMessage:
    low, high = FESTIVAL_LOOKAHEAD_DAYS
    soon = [f for f in (snapshot.festivals if snapshot else []) if low <= f.days <= high]
    if soon:
        festival = min(soon, key=lambda f: f.days)
        when = "tomorrow" if festival.days == 1 else f"in {festival.days} days"
        return NotificationMessage(
            title=f"🎉 {festival.name} is coming",
            body=f"{festival.name} is {when}. {festival.description}.",
            data={
                "url": "/daily-guide",
                "type": "festival-reminder",
                "time": "weekly",
                "festival": festival.name,
                "days": str(festival.days),
            },
            timestamp=now,
        )

    return NotificationMessage(
        title="🕉️ Weekly Spiritual Wisdom",
        body="Discover new teachings and divine wisdom for the week ahead.",
        data={"url": "/saints", "type": "weekly-wisdom", "time": "weekly"},
        timestamp=now,
    )


@dataclass
class ScheduledJob:
    id: str
    label: str
    time: str
    frequency: str
    cron: Dict[str, str]
    build: Optional[Callable[[datetime, Optional[PanchangSnapshot]], NotificationMessage]] = None
    needs_panchang: bool = False
    task: Optional[Callable[[datetime], Awaitable]] = field(default=None, repr=False)


NOTIFICATION_JOBS = [
    ScheduledJob(
        id="morning-blessing", label="Morning Blessing", time="6:00 AM IST", frequency="Daily",
        cron={"hour": "6", "minute": "0"}, build=build_morning_message, needs_panchang=True,
    ),
    ScheduledJob(
        id="evening-prayer", label="Evening Prayer", time="6:00 PM IST", frequency="Daily",
        cron={"hour": "18", "minute": "0"}, build=build_evening_message,
    ),
    ScheduledJob(
        id="weekly-wisdom", label="Weekly Wisdom", time="9:00 AM IST Monday", frequency="Weekly",
        cron={"day_of_week": "mon", "hour": "9", "minute": "0"}, build=build_weekly_message, needs_panchang=True,
    ),
]


class NotificationScheduler:
    """
    Fixed time-of-day jobs pinned to one timezone (IST by default).
    run_job() absorbs every failure so one bad firing never stops later ones.
    """

    def __init__(
            self,
            dispatcher: NotificationDispatcher,
            panchang_service: PanchangService,
            timezone: str = "Asia/Kolkata",
            milestone_task: Optional[Callable[[datetime], Awaitable]] = None,
            event_reminder_task: Optional[Callable[[datetime], Awaitable]] = None,
    ):
        self.dispatcher = dispatcher
        self.panchang_service = panchang_service
        self.tz = pytz.timezone(timezone)
        self.scheduler = AsyncIOScheduler(timezone=self.tz)
        self.jobs = {job.id: job for job in NOTIFICATION_JOBS}
        if milestone_task is not None:
            self.jobs["milestone-emails"] = ScheduledJob(
                id="milestone-emails", label="Milestone Emails", time="9:00 AM IST", frequency="Daily",
                cron={"hour": "9", "minute": "0"}, task=milestone_task,
            )
        if event_reminder_task is not None:
            self.jobs["event-reminders"] = ScheduledJob(
                id="event-reminders", label="Event Reminders", time="Every 5 minutes", frequency="Every 5 minutes",
                cron={"minute": "*/5"}, task=event_reminder_task,
            )

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def start(self):
        for job in self.jobs.values():
            self.scheduler.add_job(
                self.run_job,
                CronTrigger(timezone=self.tz, **job.cron),
                args=[job.id],
                id=job.id,
                name=job.label,
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=300,
            )
        self.scheduler.start()
        logger.info("FCM notification scheduler initialized")
        for job in self.jobs.values():
            logger.info(f"  - {job.label}: {job.time}")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def build_message(self, job: ScheduledJob, now: datetime) -> NotificationMessage:
        snapshot = None
        if job.needs_panchang:
            try:
                snapshot = await self.panchang_service.get_todays_panchang(now=now)
            except Exception as e:
                logger.error(f"Panchang fetch failed for {job.id}, using fallback message: {e}")
        try:
            return job.build(now, snapshot)
        except Exception as e:
            if snapshot is None:
                raise
            logger.error(f"Could not build {job.id} message from Panchang data, using fallback: {e}")
            return job.build(now, None)

    async def run_job(self, job_id: str, now: Optional[datetime] = None) -> JobRunResult:
        job = self.jobs.get(job_id)
        if job is None:
            raise UnknownJobError(job_id)

        now = now or self.now()
        logger.info(f"Running scheduled job '{job_id}'")
        try:
            if job.task is not None:
                await job.task(now.replace(tzinfo=None))
                return JobRunResult(job_id=job_id)

            message = await self.build_message(job, now)
            result = await self.dispatcher.send_to_all(message.title, message.body, message.data)
            if not result.success:
                logger.warning(f"Job '{job_id}' did not deliver: {result.error}")
            return JobRunResult(job_id=job_id, message=message, result=result)
        except Exception as e:
            logger.exception(f"Scheduled job '{job_id}' failed: {e}")
            return JobRunResult(job_id=job_id)

    def describe(self) -> List[ScheduledNotificationInfo]:
        info = []
        for job in self.jobs.values():
            scheduled = self.scheduler.get_job(job.id) if self.scheduler.running else None
            info.append(ScheduledNotificationInfo(
                id=job.id,
                time=job.time,
                type=job.label,
                frequency=job.frequency,
                next_run_time=scheduled.next_run_time if scheduled else None,
            ))
        return info
