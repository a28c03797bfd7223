import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import Services, get_services
from app.models.panchang import DEFAULT_LOCATION, Location

logger = logging.getLogger(__name__)

router = APIRouter()


def location_from_query(
        lat: Optional[float] = Query(None),
        lng: Optional[float] = Query(None),
        tz: Optional[float] = Query(None),
        place: Optional[str] = Query(None),
) -> Location:
    return Location(
        latitude=lat if lat is not None else DEFAULT_LOCATION.latitude,
        longitude=lng if lng is not None else DEFAULT_LOCATION.longitude,
        timezone=tz if tz is not None else DEFAULT_LOCATION.timezone,
        place=place or DEFAULT_LOCATION.place,
    )


@router.get("/today")
async def get_todays_panchang(
        location: Location = Depends(location_from_query),
        services: Services = Depends(get_services),
):
    try:
        snapshot = await services.panchang.get_todays_panchang(location, now=services.scheduler.now())
    except Exception as e:
        logger.exception(f"Error fetching Panchang data: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch Panchang data")
    return {
        "success": True,
        "data": snapshot.model_dump(by_alias=True),
        "generated": datetime.now().isoformat(),
    }


@router.get("/festivals")
async def get_festivals(services: Services = Depends(get_services)):
    try:
        festivals = await services.panchang.get_upcoming_festivals(now=services.scheduler.now())
    except Exception as e:
        logger.exception(f"Error fetching festivals: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch festival data")
    return {
        "success": True,
        "festivals": [f.model_dump(by_alias=True) for f in festivals],
        "generated": datetime.now().isoformat(),
    }
