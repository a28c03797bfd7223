import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from app.config import Settings

logger = logging.getLogger(__name__)


def _service_account_info(settings: Settings) -> Optional[dict]:
    if not (settings.firebase_project_id and settings.firebase_private_key and settings.firebase_client_email):
        return None
    return {
        "type": "service_account",
        "project_id": settings.firebase_project_id,
        "private_key_id": settings.firebase_private_key_id,
        # .env files usually carry the key with literal "\n" sequences
        "private_key": settings.firebase_private_key.replace("\\n", "\n"),
        "client_email": settings.firebase_client_email,
        "client_id": settings.firebase_client_id,
        "token_uri": "https://oauth2.googleapis.com/token",
    }


def init_firebase(settings: Settings) -> Optional[firebase_admin.App]:
    """
    Initializes the Firebase Admin SDK once, from the FIREBASE_* service-account
    fields or a credentials file. Returns None when nothing is configured.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    info = _service_account_info(settings)
    try:
        if info:
            cred = credentials.Certificate(info)
        elif settings.firebase_credentials_path:
            cred = credentials.Certificate(settings.firebase_credentials_path)
        else:
            logger.warning("Firebase credentials not configured; push notifications are disabled.")
            return None
        app = firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None)
        logger.info("Firebase Admin SDK initialized successfully.")
        return app
    except Exception as e:
        logger.error(f"Error initializing Firebase Admin SDK: {e}")
        return None
