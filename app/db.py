import logging
from typing import Optional, Tuple

import firebase_admin
from firebase_admin import credentials, exceptions, firestore_async
from google.cloud.firestore import AsyncClient

from .config import Settings

log = logging.getLogger("app.firestore")

FIREBASE_APP_NAME = "lakshme-backend"


def init_firestore(settings: Settings) -> Tuple[Optional[firebase_admin.App], Optional[AsyncClient]]:
    """Initialize the Firebase Admin app and its async Firestore client.

    Initialization problems are logged, never raised: the server keeps running
    and every store-backed endpoint reports the store as unavailable.
    """
    if not settings.firebase_configured:
        log.error("firebase_init_skipped", extra={"reason": "missing FIREBASE_* settings"})
        return None, None

    try:
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "private_key": settings.FIREBASE_PRIVATE_KEY,
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        fb_app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)
        client = firestore_async.client(app=fb_app)
    except (ValueError, exceptions.FirebaseError) as e:
        log.error("firebase_init_failed", extra={"error": str(e)})
        return None, None

    log.info("firebase_initialized", extra={"project_id": settings.FIREBASE_PROJECT_ID})
    return fb_app, client


def close_firestore(fb_app: Optional[firebase_admin.App]) -> None:
    if fb_app is not None:
        firebase_admin.delete_app(fb_app)
