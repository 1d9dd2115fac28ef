from __future__ import annotations

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from typing import Optional

import cloudinary.exceptions
import cloudinary.uploader

from ..config import Settings

logger = logging.getLogger(__name__)

PROFILE_FOLDER = "profile_photos"

# store-side transforms: face-aware square crop, then automatic format/quality
PROFILE_TRANSFORMATION = [
    {"width": 400, "height": 400, "crop": "fill", "gravity": "face"},
    {"quality": "auto", "fetch_format": "auto"},
]


class ImageUploadError(Exception):
    """Raised when the image store rejects an upload."""


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


class CloudinaryImageStore:
    def __init__(self, settings: Settings) -> None:
        self._cloud_name: Optional[str] = settings.CLOUDINARY_CLOUD_NAME
        self._api_key: Optional[str] = settings.CLOUDINARY_API_KEY
        self._api_secret: Optional[str] = settings.CLOUDINARY_API_SECRET
        if self.configured:
            logger.info("Cloudinary configured", extra={"cloud_name": self._cloud_name})
        else:
            logger.warning("Cloudinary disabled; CLOUDINARY_CLOUD_NAME is not set")

    @property
    def configured(self) -> bool:
        return bool(self._cloud_name)

    def _upload_blocking(self, data: bytes, user_id: str) -> dict:
        return cloudinary.uploader.upload(
            io.BytesIO(data),
            folder=f"{PROFILE_FOLDER}/{user_id}",
            public_id=f"profile_{int(time.time() * 1000)}",
            transformation=PROFILE_TRANSFORMATION,
            cloud_name=self._cloud_name,
            api_key=self._api_key,
            api_secret=self._api_secret,
            secure=True,
        )

    async def upload_profile_image(self, *, user_id: str, data: bytes) -> UploadedImage:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._upload_blocking, data, user_id)
        except cloudinary.exceptions.Error as exc:
            raise ImageUploadError(str(exc)) from exc
        return UploadedImage(url=result["secure_url"], public_id=result["public_id"])
