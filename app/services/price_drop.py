from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Union

from google.api_core.exceptions import GoogleAPIError

from ..context import AppContext
from ..emails.templates import render
from ..errors import UpstreamFailure, ValidationError
from ..observability.metrics import PRICE_DROP_MAILS
from ..repos import users as users_repo
from .mailer import MailDeliveryError

log = logging.getLogger(__name__)

FALLBACK_NAME = "Valued Customer"

ProductId = Union[str, int]


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str


@dataclass(frozen=True)
class PriceDropResult:
    notified: int
    total: int
    savings: float = 0
    savings_percent: int = 0
    price_dropped: bool = True

    @property
    def message(self) -> str:
        if not self.price_dropped:
            return "Price was not reduced, no notifications sent"
        if self.total == 0:
            return "No users have this product in their wishlist"
        return f"Price drop notifications sent to {self.notified} users"


def savings_for(old_price: float, new_price: float) -> tuple[float, int]:
    savings = old_price - new_price
    # half-up, so 12.5% reads as 13%
    percent = int(math.floor(savings / old_price * 100 + 0.5))
    return savings, percent


async def find_recipients(ctx: AppContext, product_id: ProductId) -> List[Recipient]:
    """Every user with an email whose wishlist holds ``product_id``, in scan order."""
    db = ctx.require_db()
    out: List[Recipient] = []
    async for user_id, data in users_repo.iter_all(db):
        email = data.get("email")
        if not email:
            continue
        if await users_repo.wishlist_has_product(db, user_id, product_id):
            name = data.get("fullName") or data.get("displayName") or FALLBACK_NAME
            out.append(Recipient(email=email, name=name))
    return out


async def notify_price_drop(
    ctx: AppContext,
    *,
    product_id: Optional[ProductId],
    product_name: Optional[str],
    old_price: Optional[float],
    new_price: Optional[float],
    product_image: Optional[str] = None,
) -> PriceDropResult:
    """Mail every wishlist holder about a lower price, one recipient at a time.

    A failed send is logged and skipped; the rest still go out.
    """
    # zero counts as missing here, so a product cannot drop to a price of 0
    if not product_id or not product_name or not old_price or not new_price:
        raise ValidationError("Product ID, name, old price, and new price are required")

    if new_price >= old_price:
        return PriceDropResult(notified=0, total=0, price_dropped=False)

    log.info("price_drop_detected", extra={
        "product_id": product_id, "product_name": product_name,
        "old_price": old_price, "new_price": new_price,
    })

    try:
        recipients = await find_recipients(ctx, product_id)
    except GoogleAPIError as e:
        log.error("price_drop_scan_failed", extra={"product_id": product_id, "error": str(e)})
        raise UpstreamFailure("Failed to send notifications") from e

    log.info("price_drop_recipients", extra={"product_id": product_id, "count": len(recipients)})
    if not recipients:
        return PriceDropResult(notified=0, total=0)

    savings, savings_percent = savings_for(old_price, new_price)
    sent = 0
    for r in recipients:
        doc = render("price_drop", {
            "name": r.name,
            "product_name": product_name,
            "product_image": product_image,
            "old_price": old_price,
            "new_price": new_price,
            "savings": savings,
            "savings_percent": savings_percent,
            "brand": ctx.settings.MAIL_SENDER_NAME,
            "logo_url": ctx.settings.LOGO_URL,
            "shop_url": ctx.settings.SHOP_URL,
        })
        try:
            await ctx.mailer.send(to=r.email, doc=doc)
        except MailDeliveryError as e:
            PRICE_DROP_MAILS.labels(result="failed").inc()
            log.error("price_drop_email_failed", extra={"email": r.email, "error": str(e)})
            continue
        PRICE_DROP_MAILS.labels(result="sent").inc()
        sent += 1

    log.info("price_drop_notifications_sent", extra={"sent": sent, "total": len(recipients)})
    return PriceDropResult(notified=sent, total=len(recipients), savings=savings, savings_percent=savings_percent)
