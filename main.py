# file: main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.controllers.daily_guide import router as daily_guide_router
from app.controllers.email import router as email_router
from app.controllers.events import router as events_router
from app.controllers.notification import router as notification_router
from app.controllers.panchang import router as panchang_router
from app.database.connection import AsyncSessionLocal, init_db
from app.dependencies import build_services
from app.services.firebase_app import init_firebase

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("santvaani")

app = FastAPI(title="Santvaani Notifications API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.services = build_services(settings, AsyncSessionLocal)

app.include_router(notification_router, prefix="/api/fcm", tags=["notifications"])
app.include_router(panchang_router, prefix="/api/panchang", tags=["panchang"])
app.include_router(events_router, prefix="/api/notifications", tags=["events"])
app.include_router(email_router, prefix="/api/email", tags=["email"])
app.include_router(daily_guide_router, prefix="/api/daily-guide", tags=["daily-guide"])


@app.get("/")
async def root():
    return {"message": "Santvaani API is running"}


@app.on_event("startup")
async def startup_event():
    await init_db()
    init_firebase(settings)
    if settings.scheduler_enabled:
        app.state.services.scheduler.start()
    else:
        logger.info("Notification scheduler disabled (SCHEDULER_ENABLED=false)")


@app.on_event("shutdown")
async def shutdown_event():
    app.state.services.scheduler.shutdown()
