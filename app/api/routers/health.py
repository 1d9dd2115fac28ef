from fastapi import APIRouter, Depends
from ...context import AppContext, get_context
from ...domain.schemas.api import HealthOut

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("", response_model=HealthOut)
async def health(ctx: AppContext = Depends(get_context)):
    S = ctx.settings
    return HealthOut(
        status="ok",
        message="Server is running",
        firebase="connected" if ctx.db is not None else "not connected",
        email="configured" if S.EMAIL_USER else "not configured",
        cloudinary="configured" if S.CLOUDINARY_CLOUD_NAME else "not configured",
    )
