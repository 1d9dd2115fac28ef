from __future__ import annotations
from fastapi import APIRouter, Depends

from ...context import AppContext, get_context
from ...domain.schemas.api import PriceDropIn, PriceDropOut
from ...services import price_drop as price_drop_service

router = APIRouter(prefix="/api", tags=["notifications"])


@router.post("/notify-price-drop", response_model=PriceDropOut, response_model_exclude_none=True)
async def notify_price_drop(payload: PriceDropIn, ctx: AppContext = Depends(get_context)):
    result = await price_drop_service.notify_price_drop(
        ctx,
        product_id=payload.product_id,
        product_name=payload.product_name,
        product_image=payload.product_image,
        old_price=payload.old_price,
        new_price=payload.new_price,
    )
    return PriceDropOut(
        message=result.message,
        notifiedCount=result.notified,
        # total is omitted unless at least one wishlist holder was found
        totalWishlistUsers=result.total if result.total else None,
    )
