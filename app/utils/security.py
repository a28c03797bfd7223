import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.config import Settings
from app.dependencies import get_app_settings


def verify_admin_key(
        x_api_key: Optional[str] = Header(None),
        settings: Settings = Depends(get_app_settings),
):
    """Admin-only routes: the X-API-Key header must match ADMIN_API_KEY."""
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin API Key is missing")
    if not settings.admin_api_key or not hmac.compare_digest(x_api_key, settings.admin_api_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Admin API Key")
