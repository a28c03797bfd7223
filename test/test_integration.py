import pytest
import pytest_asyncio
from datetime import datetime
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# --- App Imports ---
from main import app
from app.config import Settings
from app.database.connection import Base, get_db
from app.database.models import EmailLog, EventSubscription, PushToken, ScheduledNotification, Subscriber
from app.dependencies import Services, build_services
from app.services.email_service import EmailService

# --- Test DB Setup ---
DATABASE_URL = "sqlite+aiosqlite:///:memory:"
engine = create_async_engine(DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = async_sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

ADMIN_KEY = "test-admin-key"
ADMIN_HEADERS = {"X-API-Key": ADMIN_KEY}


# --- CORE FIXTURES ---

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with TestingSessionLocal() as session:
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
def services(db_session: AsyncSession) -> Services:
    settings = Settings(
        admin_api_key=ADMIN_KEY,
        brevo_api_key="test-brevo-key",
        email_send_delay_ms=0,
        milestone_send_delay_ms=0,
        scheduler_enabled=False,
    )
    original = app.state.services
    app.state.services = build_services(settings, TestingSessionLocal)
    yield app.state.services
    app.state.services = original


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, services: Services) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def mock_brevo():
    """Stubs the Brevo HTTP call; everything above it (templates, logging) runs for real."""
    with patch.object(EmailService, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = "<test-message@brevo>"
        yield mock_post


@pytest.fixture(scope="function")
def mock_fcm():
    with patch('app.services.push_dispatcher.messaging.send_each_for_multicast') as mock_send:
        mock_send.side_effect = lambda message: SimpleNamespace(
            responses=[SimpleNamespace(success=True, exception=None) for _ in message.tokens],
            success_count=len(message.tokens),
            failure_count=0,
        )
        yield mock_send


# ==================================
# ===== ROOT & NOTIFICATIONS =======
# ==================================

@pytest.mark.asyncio
async def test_itc_001_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Santvaani API is running"}


@pytest.mark.asyncio
async def test_itc_002_register_token_persists_once(client: AsyncClient, db_session: AsyncSession):
    payload = {"token": "fcm-device-token-0123456789abcdef", "userId": "user-1",
               "timestamp": "2025-10-18T06:00:00Z"}

    first = await client.post("/api/fcm/register-token", json=payload)
    second = await client.post("/api/fcm/register-token", json=payload)

    assert first.status_code == 200
    assert first.json() == {"success": True, "message": "FCM token registered successfully", "totalTokens": 1}
    assert second.json()["totalTokens"] == 1
    rows = (await db_session.execute(select(PushToken))).scalars().all()
    assert len(rows) == 1
    assert rows[0].user_id == "user-1"


@pytest.mark.asyncio
async def test_itc_003_register_token_missing(client: AsyncClient):
    response = await client.post("/api/fcm/register-token", json={"userId": "user-1"})
    assert response.status_code == 400
    assert response.json()["detail"] == "FCM token is required"


@pytest.mark.asyncio
async def test_itc_004_stats_masks_tokens(client: AsyncClient):
    await client.post("/api/fcm/register-token", json={"token": "abcdefghijklmnopqrstuvwxyz-secret"})

    response = await client.get("/api/fcm/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["totalRegisteredTokens"] == 1
    assert data["registeredTokens"] == ["abcdefghijklmnopqrst..."]
    assert [job["id"] for job in data["scheduledNotifications"]] == [
        "morning-blessing", "evening-prayer", "weekly-wisdom", "milestone-emails", "event-reminders",
    ]


@pytest.mark.asyncio
async def test_itc_005_send_test_without_tokens(client: AsyncClient, mock_fcm):
    response = await client.post("/api/fcm/send-test", json={})
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"] == "No tokens registered"
    mock_fcm.assert_not_called()


@pytest.mark.asyncio
async def test_itc_006_send_test_delivers(client: AsyncClient, mock_fcm):
    await client.post("/api/fcm/register-token", json={"token": "device-a"})
    await client.post("/api/fcm/register-token", json={"token": "device-b"})

    response = await client.post("/api/fcm/send-test", json={"title": "Hari Om", "url": "/saints"})

    assert response.status_code == 200
    assert response.json()["successCount"] == 2
    message = mock_fcm.call_args[0][0]
    assert message.notification.title == "Hari Om"
    assert message.notification.body == "This is a test notification from SantVaani backend."
    assert message.data["url"] == "/saints"
    assert message.data["type"] == "test"


@pytest.mark.asyncio
async def test_itc_007_run_job_requires_admin_key(client: AsyncClient):
    missing = await client.post("/api/fcm/jobs/evening-prayer/run")
    wrong = await client.post("/api/fcm/jobs/evening-prayer/run", headers={"X-API-Key": "nope"})
    assert missing.status_code == 401
    assert missing.json()["detail"] == "Admin API Key is missing"
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid Admin API Key"


@pytest.mark.asyncio
async def test_itc_008_run_unknown_job(client: AsyncClient):
    response = await client.post("/api/fcm/jobs/midnight-snack/run", headers=ADMIN_HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_itc_009_run_job_now(client: AsyncClient, mock_fcm):
    await client.post("/api/fcm/register-token", json={"token": "device-a"})

    response = await client.post("/api/fcm/jobs/evening-prayer/run", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["jobId"] == "evening-prayer"
    assert data["message"]["title"] == "🌇 Evening Prayer Time"
    assert data["result"]["successCount"] == 1


# ==================================
# ===== PANCHANG ===================
# ==================================

@pytest.mark.asyncio
async def test_itc_010_todays_panchang(client: AsyncClient):
    response = await client.get("/api/panchang/today")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["location"]["place"] == "Delhi, India"
    assert body["data"]["source"] == "mock"
    assert {"tithi", "nakshatra", "yoga", "karana", "muhurat", "festivals"} <= set(body["data"])
    assert "generated" in body


@pytest.mark.asyncio
async def test_itc_011_todays_panchang_for_location(client: AsyncClient):
    response = await client.get("/api/panchang/today", params={"lat": 19.076, "lng": 72.8777, "place": "Mumbai"})
    assert response.status_code == 200
    location = response.json()["data"]["location"]
    assert location["place"] == "Mumbai"
    assert location["latitude"] == 19.076


@pytest.mark.asyncio
async def test_itc_012_panchang_provider_failure(client: AsyncClient, services: Services):
    services.panchang.provider.get_snapshot = AsyncMock(side_effect=RuntimeError("feed down"))
    response = await client.get("/api/panchang/today")
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch Panchang data"


@pytest.mark.asyncio
async def test_itc_013_upcoming_festivals(client: AsyncClient):
    response = await client.get("/api/panchang/festivals")
    assert response.status_code == 200
    festivals = response.json()["festivals"]
    assert len(festivals) <= 8
    assert all(1 <= f["days"] <= 365 for f in festivals)


# ==================================
# ===== EMAIL ======================
# ==================================

@pytest.mark.asyncio
async def test_itc_014_signup_sends_welcome_once(client: AsyncClient, db_session: AsyncSession, mock_brevo):
    payload = {"email": "asha@example.com", "name": "Asha"}

    first = await client.post("/api/email/signup", json=payload)
    second = await client.post("/api/email/signup", json=payload)

    assert first.status_code == 201
    assert first.json()["alreadySubscribed"] is False
    assert first.json()["email"]["messageId"] == "<test-message@brevo>"
    assert second.json()["alreadySubscribed"] is True
    mock_brevo.assert_awaited_once()
    sent = mock_brevo.call_args[0][0]
    assert sent["subject"] == "Welcome to Santvaani, Asha"

    logs = (await db_session.execute(select(EmailLog))).scalars().all()
    assert [(log.user_email, log.email_type, log.success) for log in logs] == [("asha@example.com", "welcome", True)]


@pytest.mark.asyncio
async def test_itc_015_signup_rejects_bad_email(client: AsyncClient, mock_brevo):
    response = await client.post("/api/email/signup", json={"email": "not-an-email"})
    assert response.status_code == 422
    mock_brevo.assert_not_called()


@pytest.mark.asyncio
async def test_itc_016_broadcast(client: AsyncClient, mock_brevo):
    payload = {
        "recipients": [{"email": "one@example.com", "name": "One"}, {"email": "two@example.com"}],
        "subject": "Diwali greetings, {{name}}",
        "htmlContent": "<p>Namaste {{name}}</p>",
    }

    unauthorized = await client.post("/api/email/broadcast", json=payload, headers={"X-API-Key": "nope"})
    response = await client.post("/api/email/broadcast", json=payload, headers=ADMIN_HEADERS)

    assert unauthorized.status_code == 401
    assert response.status_code == 200
    data = response.json()
    assert data == {
        "success": True,
        "sent": 2,
        "failed": 0,
        "results": [
            {"success": True, "messageId": "<test-message@brevo>", "error": None, "email": "one@example.com"},
            {"success": True, "messageId": "<test-message@brevo>", "error": None, "email": "two@example.com"},
        ],
    }
    subjects = sorted(call.args[0]["subject"] for call in mock_brevo.call_args_list)
    assert subjects == ["Diwali greetings, Dear User", "Diwali greetings, One"]


@pytest.mark.asyncio
async def test_itc_017_broadcast_requires_recipients(client: AsyncClient):
    response = await client.post(
        "/api/email/broadcast",
        json={"recipients": [], "subject": "Hi", "htmlContent": "<p>Hi</p>"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_itc_018_milestone_emails_sent_once(db_session: AsyncSession, services: Services, mock_brevo):
    now = datetime(2025, 10, 18, 9, 0)
    db_session.add_all([
        Subscriber(email="week@example.com", name="Week", created_at=datetime(2025, 10, 10, 14, 30)),
        Subscriber(email="month@example.com", created_at=datetime(2025, 9, 17, 8, 0)),
        Subscriber(email="today@example.com", name="New", created_at=datetime(2025, 10, 18, 7, 0)),
    ])
    await db_session.commit()

    seven, thirty = await services.milestones.run(now=now)

    assert (seven.found, seven.sent, seven.skipped) == (1, 1, 0)
    assert (thirty.found, thirty.sent, thirty.skipped) == (1, 1, 0)
    recipients = sorted(call.args[0]["to"][0]["name"] for call in mock_brevo.call_args_list)
    assert recipients == ["Friend", "Week"]

    seven_again, thirty_again = await services.milestones.run(now=now)
    assert (seven_again.sent, seven_again.skipped) == (0, 1)
    assert (thirty_again.sent, thirty_again.skipped) == (0, 1)
    assert mock_brevo.await_count == 2


@pytest.mark.asyncio
async def test_itc_019_milestone_endpoint(client: AsyncClient, mock_brevo):
    response = await client.post("/api/email/milestones/run", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert [r["emailType"] for r in response.json()] == ["7day", "30day"]
    mock_brevo.assert_not_called()


# --- EVENT NOTIFICATIONS ---

EVENT_PAYLOAD = {
    "eventId": 7,
    "eventTitle": "Sandhya Kirtan",
    "eventDate": "2099-01-15",
    "eventTime": "18:00 - 20:00",
    "eventLocation": "ISKCON Temple",
    "eventCity": "Bengaluru",
    "eventType": "kirtan",
    "fcmToken": "kirtan-device-token",
    "userId": "user-7",
}


@pytest.fixture(scope="function")
def mock_fcm_send():
    with patch('app.services.event_notifications.messaging.send') as mock_send:
        mock_send.return_value = "projects/santvaani/messages/1"
        yield mock_send


@pytest.mark.asyncio
async def test_itc_020_subscribe_to_event(client: AsyncClient, db_session: AsyncSession, mock_fcm_send):
    response = await client.post("/api/notifications/subscribe", json=EVENT_PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["confirmationSent"] is True
    assert body["reminderAt"].startswith("2099-01-15T16:00")
    message = mock_fcm_send.call_args[0][0]
    assert message.token == "kirtan-device-token"
    assert "कीर्तन" in message.notification.body

    reminders = (await db_session.execute(select(ScheduledNotification))).scalars().all()
    assert [r.subscription_id for r in reminders] == [body["subscriptionId"]]


@pytest.mark.asyncio
async def test_itc_021_subscribe_rejects_unreadable_time(client: AsyncClient, mock_fcm_send):
    response = await client.post("/api/notifications/subscribe", json={**EVENT_PAYLOAD, "eventTime": "after aarti"})
    assert response.status_code == 400
    mock_fcm_send.assert_not_called()

    missing_token = {k: v for k, v in EVENT_PAYLOAD.items() if k != "fcmToken"}
    response = await client.post("/api/notifications/subscribe", json=missing_token)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_itc_022_unsubscribe_from_event(client: AsyncClient, db_session: AsyncSession, mock_fcm_send):
    await client.post("/api/notifications/subscribe", json=EVENT_PAYLOAD)

    rejected = await client.post("/api/notifications/unsubscribe", json={"eventId": 7})
    assert rejected.status_code == 400

    response = await client.post(
        "/api/notifications/unsubscribe", json={"eventId": 7, "fcmToken": "kirtan-device-token"},
    )
    assert response.status_code == 200
    assert response.json()["deactivated"] == 1

    db_session.expire_all()
    subscription = (await db_session.execute(select(EventSubscription))).scalars().one()
    assert subscription.is_active is False
    assert (await db_session.execute(select(ScheduledNotification))).scalars().all() == []


# --- DAILY GUIDE ---

@pytest.mark.asyncio
async def test_itc_023_complete_daily_guide(client: AsyncClient):
    response = await client.get("/api/daily-guide/complete", params={"place": "Varanasi"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["location"]["place"] == "Varanasi"
    assert data["panchang"]["tithi"]["english"]
    assert data["todaysMantra"]["textEnglish"]
    assert isinstance(data["upcomingFestivals"], list)


@pytest.mark.asyncio
async def test_itc_024_signup_name_markup_is_escaped(client: AsyncClient, mock_brevo):
    name = '<a href="https://evil.example">Verify account</a>'
    response = await client.post("/api/email/signup", json={"email": "mallory@example.com", "name": name})

    assert response.status_code == 201
    payload = mock_brevo.call_args.args[0]
    assert name not in payload["htmlContent"]
    assert "&lt;a href=" in payload["htmlContent"]
    assert payload["subject"] == f"Welcome to Santvaani, {name}"
