from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from google.cloud import firestore
from google.cloud.firestore import AsyncClient

from .collections import COLLECTION_OTP


@dataclass
class OtpRecord:
    email: str
    code: str
    expires_at: datetime
    attempts: int = 0
    full_name: str = ""
    uid: Optional[str] = None

    @classmethod
    def from_doc(cls, data: dict) -> "OtpRecord":
        return cls(
            email=data["email"],
            code=str(data["otp"]),
            expires_at=data["expiresAt"],
            attempts=int(data.get("attempts") or 0),
            full_name=data.get("fullName") or "",
            uid=data.get("uid") or None,
        )


def _ref(db: AsyncClient, email: str):
    # one live record per email: the email is the document id
    return db.collection(COLLECTION_OTP).document(email)


async def get(db: AsyncClient, email: str) -> Optional[OtpRecord]:
    snap = await _ref(db, email).get()
    return OtpRecord.from_doc(snap.to_dict()) if snap.exists else None


async def replace(db: AsyncClient, record: OtpRecord) -> None:
    """Create or overwrite the record for ``record.email``; attempts start over."""
    await _ref(db, record.email).set({
        "otp": record.code,
        "email": record.email,
        "fullName": record.full_name or "",
        "uid": record.uid or None,
        "expiresAt": record.expires_at,
        "createdAt": firestore.SERVER_TIMESTAMP,
        "attempts": 0,
    })


async def set_attempts(db: AsyncClient, email: str, attempts: int) -> None:
    # plain write of the value read earlier, not firestore.Increment
    await _ref(db, email).update({"attempts": attempts})


async def delete(db: AsyncClient, email: str) -> None:
    await _ref(db, email).delete()
