from __future__ import annotations
from fastapi import APIRouter, Depends

from ...context import AppContext, get_context
from ...domain.schemas.api import ApiOut, SubscribeIn
from ...services import newsletter as newsletter_service

router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])


@router.post("/subscribe", response_model=ApiOut)
async def subscribe(payload: SubscribeIn, ctx: AppContext = Depends(get_context)):
    message = await newsletter_service.subscribe(ctx, email=payload.email)
    return ApiOut(message=message)
