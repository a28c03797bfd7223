# file: app/models/email.py

from pydantic import BaseModel, EmailStr, Field
from app.models.base import CamelModel
from typing import Optional, List


class EmailTemplate(BaseModel):
    subject: str
    html_content: str


class RenderedEmail(BaseModel):
    subject: str
    html_content: str
    text_content: str


class Recipient(CamelModel):
    email: EmailStr
    name: Optional[str] = None


class BroadcastRequest(CamelModel):
    recipients: List[Recipient] = Field(min_length=1)
    subject: str
    html_content: str


class SignupRequest(CamelModel):
    email: EmailStr
    name: Optional[str] = None
    user_id: Optional[str] = None


class EmailResult(CamelModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class RecipientResult(EmailResult):
    email: str


class BroadcastResult(CamelModel):
    success: bool
    sent: int = 0
    failed: int = 0
    results: List[RecipientResult] = Field(default_factory=list)


class MilestoneRunResult(CamelModel):
    email_type: str
    found: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
