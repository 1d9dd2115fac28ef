from __future__ import annotations
import logging
from typing import Optional

from google.api_core.exceptions import GoogleAPIError

from ..context import AppContext
from ..errors import ServiceUnavailable, UploadFailed, ValidationError
from ..observability.metrics import PROFILE_UPLOADS
from ..repos import users as users_repo
from .media import ImageUploadError, UploadedImage

log = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024


async def upload_profile_image(ctx: AppContext, *, user_id: Optional[str], data: bytes) -> UploadedImage:
    """Push the image to the media store, then point the user's photoURL at it.

    The record update is best-effort: the uploaded URL is returned even when
    the store is down or the update fails.
    """
    if not user_id:
        raise ValidationError("User ID is required")
    if not ctx.media.configured:
        raise ServiceUnavailable("Image storage not configured")

    try:
        image = await ctx.media.upload_profile_image(user_id=user_id, data=data)
    except ImageUploadError as e:
        PROFILE_UPLOADS.labels(result="upload_failed").inc()
        log.error("profile_upload_failed", extra={"user_id": user_id, "error": str(e)})
        raise UploadFailed() from e
    log.info("profile_image_uploaded", extra={"user_id": user_id, "url": image.url})

    if ctx.db is None:
        PROFILE_UPLOADS.labels(result="uploaded_not_saved").inc()
        log.warning("profile_update_skipped", extra={"user_id": user_id, "reason": "firebase not initialized"})
        return image

    try:
        await users_repo.set_photo_url(ctx.db, user_id, image.url)
    except GoogleAPIError as e:
        PROFILE_UPLOADS.labels(result="uploaded_not_saved").inc()
        log.warning("profile_update_failed", extra={"user_id": user_id, "error": str(e)})
        return image

    PROFILE_UPLOADS.labels(result="ok").inc()
    return image
