# file: app/dependencies.py

import logging
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import Settings
from app.services.email_service import EmailService
from app.services.event_notifications import EventNotificationService
from app.services.milestone_emails import MilestoneEmailJob
from app.services.notification_scheduler import NotificationScheduler
from app.services.panchang_service import PanchangService, create_panchang_provider
from app.services.push_dispatcher import NotificationDispatcher
from app.services.token_store import TokenStore, create_token_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    token_store: TokenStore
    dispatcher: NotificationDispatcher
    panchang: PanchangService
    email: EmailService
    milestones: MilestoneEmailJob
    events: EventNotificationService
    scheduler: NotificationScheduler


def build_services(settings: Settings, session_factory: async_sessionmaker) -> Services:
    """Wires the services together once per application."""
    token_store = create_token_store(settings.token_store, session_factory, settings.token_ttl_days)
    dispatcher = NotificationDispatcher(token_store)
    panchang = PanchangService(create_panchang_provider(settings), cache_enabled=settings.panchang_cache_enabled)
    email = EmailService(settings)
    milestones = MilestoneEmailJob(session_factory, email, send_delay_ms=settings.milestone_send_delay_ms)
    events = EventNotificationService(session_factory, timezone=settings.scheduler_timezone)
    scheduler = NotificationScheduler(
        dispatcher,
        panchang,
        timezone=settings.scheduler_timezone,
        milestone_task=milestones.run,
        event_reminder_task=events.send_due_reminders,
    )
    return Services(
        settings=settings,
        token_store=token_store,
        dispatcher=dispatcher,
        panchang=panchang,
        email=email,
        milestones=milestones,
        events=events,
        scheduler=scheduler,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.services.settings
