from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, func

from app.database.connection import Base


class PushToken(Base):
    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(Text, unique=True, nullable=False, index=True)
    user_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    last_seen_at = Column(DateTime, server_default=func.now(), nullable=False)


class Subscriber(Base):
    __tablename__ = "subscribers"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    user_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)


class EmailLog(Base):
    __tablename__ = "email_sent_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String(320), nullable=False, index=True)
    # 'welcome', '7day', '30day'
    email_type = Column(String(50), nullable=False, index=True)
    success = Column(Boolean, default=True, nullable=False)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint('user_email', 'email_type', name='_email_type_uc'),)


class EventSubscription(Base):
    __tablename__ = "event_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(255), nullable=True, index=True)
    user_email = Column(String(320), nullable=True)
    fcm_token = Column(Text, nullable=False)
    event_title = Column(String(255), nullable=False)
    event_date = Column(String(20), nullable=False)
    event_time = Column(String(50), nullable=False)
    event_location = Column(String(255), nullable=True)
    event_city = Column(String(100), nullable=True)
    event_type = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    subscribed_at = Column(DateTime, server_default=func.now(), nullable=False)


class ScheduledNotification(Base):
    __tablename__ = "scheduled_notifications"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("event_subscriptions.id", ondelete="CASCADE"), nullable=True)
    event_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(255), nullable=True)
    fcm_token = Column(Text, nullable=False)
    event_title = Column(String(255), nullable=False)
    event_date = Column(String(20), nullable=False)
    event_time = Column(String(50), nullable=False)
    event_location = Column(String(255), nullable=True)
    event_city = Column(String(100), nullable=True)
    event_type = Column(String(50), nullable=True)
    # local (scheduler timezone) wall-clock time, naive
    scheduled_for = Column(DateTime, nullable=False, index=True)
    notification_type = Column(String(50), default="event_reminder", nullable=False)
    is_sent = Column(Boolean, default=False, nullable=False, index=True)
    sent_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
