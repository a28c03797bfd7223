# file: controllers/email.py

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.database.models import EmailLog
from app.dependencies import Services, get_services
from app.models.email import BroadcastRequest, BroadcastResult, MilestoneRunResult, SignupRequest
from app.services.subscribers import get_or_create_subscriber
from app.utils.security import verify_admin_key

router = APIRouter()


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
        request: SignupRequest,
        db: AsyncSession = Depends(get_db),
        services: Services = Depends(get_services),
):
    """
    Records a new subscriber and sends the welcome email. Known addresses are
    not emailed again.
    """
    subscriber, created = await get_or_create_subscriber(db, request.email, request.name, request.user_id)
    if not created:
        return {"success": True, "alreadySubscribed": True, "subscriberId": subscriber.id}

    name = request.name or "Friend"
    outcome = await services.email.send_welcome_email(request.email, name)
    db.add(EmailLog(user_email=request.email, email_type="welcome", success=outcome.success,
                    error_message=outcome.error))
    await db.commit()

    return {
        "success": True,
        "alreadySubscribed": False,
        "subscriberId": subscriber.id,
        "email": outcome.model_dump(by_alias=True),
    }


@router.post("/broadcast", response_model=BroadcastResult, dependencies=[Depends(verify_admin_key)])
async def broadcast(
        request: BroadcastRequest,
        services: Services = Depends(get_services),
):
    return await services.email.send_broadcast_email(request.recipients, request.subject, request.html_content)


@router.post("/milestones/run", response_model=List[MilestoneRunResult], dependencies=[Depends(verify_admin_key)])
async def run_milestone_emails(services: Services = Depends(get_services)):
    return await services.milestones.run()
