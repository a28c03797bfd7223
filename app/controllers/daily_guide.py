import logging

from fastapi import APIRouter, Depends, HTTPException

from app.controllers.panchang import location_from_query
from app.dependencies import Services, get_services
from app.models.panchang import Location
from app.services.daily_guide import build_daily_guide

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/complete")
async def get_complete_daily_guide(
        location: Location = Depends(location_from_query),
        services: Services = Depends(get_services),
):
    """Today's Panchang, mantra and upcoming festivals in one response."""
    now = services.scheduler.now()
    try:
        snapshot = await services.panchang.get_todays_panchang(location, now=now)
    except Exception as e:
        logger.exception(f"Complete daily guide API error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch daily guide data")
    guide = build_daily_guide(snapshot, now)
    return {"success": True, "data": guide.model_dump(by_alias=True)}
