from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ...context import AppContext, get_context
from ...domain.schemas.api import ProfileImageOut
from ...errors import ValidationError
from ...services import profile_image as profile_image_service
from ...services.profile_image import MAX_IMAGE_BYTES

router = APIRouter(prefix="/api/upload", tags=["upload"])


async def _read_image(image: Optional[UploadFile]) -> bytes:
    if image is None:
        raise ValidationError("No image file provided")
    if not (image.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed!")
    # read one byte past the cap so oversize input is detectable without buffering all of it
    data = await image.read(MAX_IMAGE_BYTES + 1)
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError("Image must be 5MB or smaller")
    return data


@router.post("/profile-image", response_model=ProfileImageOut)
async def upload_profile_image(
    image: Optional[UploadFile] = File(default=None),
    userId: Optional[str] = Form(default=None),
    ctx: AppContext = Depends(get_context),
):
    data = await _read_image(image)
    uploaded = await profile_image_service.upload_profile_image(ctx, user_id=userId, data=data)
    return ProfileImageOut(
        message="Profile image uploaded successfully",
        photoURL=uploaded.url,
        publicId=uploaded.public_id,
    )
