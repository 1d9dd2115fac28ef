from __future__ import annotations
import logging
import re
from typing import Optional

from google.api_core.exceptions import GoogleAPIError

from ..context import AppContext
from ..emails.templates import render
from ..errors import InvalidFormat, UpstreamFailure, ValidationError
from ..observability.metrics import NEWSLETTER_SUBS
from ..repos import newsletter as newsletter_repo
from .mailer import MailDeliveryError

log = logging.getLogger(__name__)

# local@domain.tld, nothing stricter
EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MSG_ALREADY = "You are already subscribed to our newsletter!"
MSG_SUBSCRIBED = "Successfully subscribed! Check your email for confirmation."


async def subscribe(ctx: AppContext, *, email: Optional[str]) -> str:
    """Store a subscriber and send the welcome mail; returns the user-facing message."""
    if not email:
        raise ValidationError("Email is required")
    if not EMAIL_SHAPE.match(email):
        raise InvalidFormat("Invalid email format")
    db = ctx.require_db()

    try:
        if await newsletter_repo.exists(db, email):
            NEWSLETTER_SUBS.labels(outcome="already").inc()
            log.info("newsletter_already_subscribed", extra={"email": email})
            return MSG_ALREADY

        await newsletter_repo.add(db, email)
        doc = render("newsletter_welcome", {
            "brand": ctx.settings.MAIL_SENDER_NAME,
            "logo_url": ctx.settings.LOGO_URL,
            "shop_url": ctx.settings.SHOP_URL,
        })
        await ctx.mailer.send(to=email, doc=doc)
    except (GoogleAPIError, MailDeliveryError) as e:
        NEWSLETTER_SUBS.labels(outcome="error").inc()
        log.error("newsletter_subscribe_failed", extra={"email": email, "error": str(e)})
        raise UpstreamFailure("Failed to subscribe. Please try again.") from e

    NEWSLETTER_SUBS.labels(outcome="subscribed").inc()
    log.info("newsletter_confirmation_sent", extra={"email": email})
    return MSG_SUBSCRIBED
