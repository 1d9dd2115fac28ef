from __future__ import annotations
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from .collections import COLLECTION_USERS, SUBCOLLECTION_WISHLIST

UserDoc = Tuple[str, Dict[str, Any]]


def _users(db: AsyncClient):
    return db.collection(COLLECTION_USERS)


def _verified_fields() -> Dict[str, Any]:
    return {
        "customEmailVerified": True,
        "emailVerifiedAt": firestore.SERVER_TIMESTAMP,
    }


async def get_by_id(db: AsyncClient, user_id: str) -> Optional[Dict[str, Any]]:
    snap = await _users(db).document(user_id).get()
    return snap.to_dict() if snap.exists else None


async def find_by_email(db: AsyncClient, email: str) -> List[UserDoc]:
    snaps = await _users(db).where(filter=FieldFilter("email", "==", email)).get()
    return [(s.id, s.to_dict() or {}) for s in snaps]


async def mark_email_verified(db: AsyncClient, user_id: str) -> None:
    await _users(db).document(user_id).update(_verified_fields())


async def merge_verified_copy(db: AsyncClient, uid: str, data: Dict[str, Any]) -> None:
    """Copy ``data`` into users/{uid}, keeping any fields already stored there."""
    await _users(db).document(uid).set({**data, "uid": uid, **_verified_fields()}, merge=True)


def new_user_id(db: AsyncClient) -> str:
    return _users(db).document().id


async def create_verified(db: AsyncClient, user_id: str, *, email: str, full_name: str) -> None:
    await _users(db).document(user_id).set({
        "uid": user_id,
        "email": email,
        "fullName": full_name,
        "displayName": full_name,
        "provider": "email",
        "role": "user",
        **_verified_fields(),
        "createdAt": firestore.SERVER_TIMESTAMP,
    })


async def set_photo_url(db: AsyncClient, user_id: str, url: str) -> None:
    await _users(db).document(user_id).update({
        "photoURL": url,
        "updatedAt": firestore.SERVER_TIMESTAMP,
    })


async def iter_all(db: AsyncClient) -> AsyncIterator[UserDoc]:
    async for snap in _users(db).stream():
        yield snap.id, snap.to_dict() or {}


async def wishlist_has_product(db: AsyncClient, user_id: str, product_id: str) -> bool:
    wishlist = _users(db).document(user_id).collection(SUBCOLLECTION_WISHLIST)
    snaps = await wishlist.where(filter=FieldFilter("productId", "==", product_id)).limit(1).get()
    return len(snaps) > 0
