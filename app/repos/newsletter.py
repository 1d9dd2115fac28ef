from __future__ import annotations

from google.cloud import firestore
from google.cloud.firestore import AsyncClient

from .collections import COLLECTION_NEWSLETTER


async def exists(db: AsyncClient, email: str) -> bool:
    snap = await db.collection(COLLECTION_NEWSLETTER).document(email).get()
    return snap.exists


async def add(db: AsyncClient, email: str) -> None:
    await db.collection(COLLECTION_NEWSLETTER).document(email).set({
        "email": email,
        "subscribedAt": firestore.SERVER_TIMESTAMP,
        "active": True,
    })
