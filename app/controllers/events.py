# file: controllers/events.py

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.dependencies import Services, get_services
from app.models.events import (
    EventSubscriptionRequest, EventSubscriptionResult, EventUnsubscribeRequest, EventUnsubscribeResult,
)
from app.services.event_notifications import InvalidEventTimeError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/subscribe", response_model=EventSubscriptionResult)
async def subscribe_to_event(
        request: EventSubscriptionRequest,
        services: Services = Depends(get_services),
):
    """
    Subscribes a device to an event: sends a confirmation push right away and
    schedules a reminder two hours before the event starts.
    """
    try:
        return await services.events.subscribe(request)
    except InvalidEventTimeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"Database error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save subscription")


@router.post("/unsubscribe", response_model=EventUnsubscribeResult)
async def unsubscribe_from_event(
        request: EventUnsubscribeRequest,
        services: Services = Depends(get_services),
):
    try:
        return await services.events.unsubscribe(request)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception(f"Database error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to remove subscription")
