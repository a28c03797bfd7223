# file: app/models/notification.py

from pydantic import Field
from app.models.base import CamelModel
from typing import Optional, Dict, List
from datetime import datetime


class TokenRegistration(CamelModel):
    # Optional so a missing token is answered with 400, not a validation error
    token: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: Optional[str] = None


class SendTestRequest(CamelModel):
    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None


class NotificationMessage(CamelModel):
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


class RegistrationResult(CamelModel):
    success: bool
    message: str
    total_tokens: int


class DispatchResult(CamelModel):
    success: bool
    success_count: int = 0
    failure_count: int = 0
    removed_tokens: int = 0
    error: Optional[str] = None


class ScheduledNotificationInfo(CamelModel):
    id: str
    time: str
    type: str
    frequency: str
    next_run_time: Optional[datetime] = None


class NotificationStats(CamelModel):
    total_registered_tokens: int
    registered_tokens: List[str]
    scheduled_notifications: List[ScheduledNotificationInfo]


class JobRunResult(CamelModel):
    job_id: str
    message: Optional[NotificationMessage] = None
    result: Optional[DispatchResult] = None
