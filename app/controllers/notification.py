# file: controllers/notification.py

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import Services, get_services
from app.models.notification import (
    DispatchResult, JobRunResult, NotificationStats, RegistrationResult, SendTestRequest, TokenRegistration,
)
from app.services.notification_scheduler import UnknownJobError
from app.services.push_dispatcher import InvalidTokenError
from app.utils.security import verify_admin_key

router = APIRouter()


@router.post("/register-token", response_model=RegistrationResult)
async def register_token(
        registration: TokenRegistration,
        services: Services = Depends(get_services),
):
    """
    Registers a device push token. Registering the same token again is a no-op.
    """
    try:
        return await services.dispatcher.register(registration.token, user_id=registration.user_id)
    except InvalidTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/send-test", response_model=DispatchResult)
async def send_test_notification(
        request: SendTestRequest,
        services: Services = Depends(get_services),
):
    return await services.dispatcher.send_to_all(
        request.title or "🧪 Test Notification",
        request.body or "This is a test notification from SantVaani backend.",
        {"url": request.url or "/daily-guide", "type": "test"},
    )


@router.get("/stats", response_model=NotificationStats)
async def get_notification_stats(services: Services = Depends(get_services)):
    return await services.dispatcher.stats(services.scheduler.describe())


@router.post("/jobs/{job_id}/run", response_model=JobRunResult, dependencies=[Depends(verify_admin_key)])
async def run_scheduled_job(
        job_id: str,
        services: Services = Depends(get_services),
):
    """
    Fires a scheduled job immediately, outside its cron time.
    """
    try:
        return await services.scheduler.run_job(job_id)
    except UnknownJobError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job '{job_id}'")
