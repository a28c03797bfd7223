# file: app/models/events.py

from pydantic import EmailStr, Field, field_validator
from app.models.base import CamelModel
from typing import Optional, Union
from datetime import datetime


class EventSubscriptionRequest(CamelModel):
    event_id: Union[int, str]
    event_title: str = Field(min_length=1)
    event_date: str = Field(description="YYYY-MM-DD")
    event_time: str = Field(description="HH:MM, HH:MM AM/PM, or a range such as 10:00 - 19:00")
    event_location: Optional[str] = None
    event_city: Optional[str] = None
    event_type: Optional[str] = None
    fcm_token: str = Field(min_length=1)
    user_id: Optional[str] = None
    user_email: Optional[EmailStr] = None
    timestamp: Optional[str] = None

    @field_validator("event_id")
    @classmethod
    def event_id_as_string(cls, value):
        return str(value)


class EventSubscriptionResult(CamelModel):
    success: bool
    message: str
    subscription_id: Optional[int] = None
    reminder_at: Optional[datetime] = None
    confirmation_sent: bool = False


class EventUnsubscribeRequest(CamelModel):
    event_id: Union[int, str]
    user_id: Optional[str] = None
    fcm_token: Optional[str] = None

    @field_validator("event_id")
    @classmethod
    def event_id_as_string(cls, value):
        return str(value)


class EventUnsubscribeResult(CamelModel):
    success: bool
    message: str
    deactivated: int = 0


class ReminderRunResult(CamelModel):
    due: int = 0
    sent: int = 0
    failed: int = 0
    expired: int = 0
