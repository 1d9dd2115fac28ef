# app/services/otp.py
from __future__ import annotations
import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple, Union

from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore import AsyncClient

from ..context import AppContext
from ..emails.templates import render
from ..errors import (
    ApiError, AttemptsExhausted, InvalidCode, OtpExpired, OtpNotFound,
    UpstreamFailure, ValidationError, VerificationFailed,
)
from ..observability.metrics import OTP_SENT, OTP_VERIFY
from ..repos import otp as otp_repo
from ..repos import users as users_repo
from ..repos.otp import OtpRecord
from .mailer import MailDeliveryError

log = logging.getLogger(__name__)

OTP_TTL = timedelta(minutes=10)
MAX_ATTEMPTS = 5
CODE_MIN, CODE_MAX = 100_000, 999_999
DEFAULT_FULL_NAME = "User"


class OtpState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class Reconciliation(str, Enum):
    BY_UID = "by_uid"
    BY_EMAIL = "by_email"
    CREATED = "created"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    """Six decimal digits, uniform over [100000, 999999]."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


async def request_code(
    ctx: AppContext,
    *,
    email: Optional[str],
    full_name: Optional[str] = None,
    uid: Optional[str] = None,
) -> None:
    """Issue a fresh code for ``email`` and mail it.

    Always overwrites the stored record, so a repeat request gets a new code,
    a new expiry and zero attempts. If mailing fails the record stays stored.
    """
    if not email:
        raise ValidationError("Email is required")
    db = ctx.require_db()

    record = OtpRecord(
        email=email,
        code=generate_code(),
        expires_at=_now_utc() + OTP_TTL,
        full_name=full_name or "",
        uid=uid or None,
    )
    try:
        await otp_repo.replace(db, record)
        doc = render("otp", {
            "full_name": full_name,
            "code": record.code,
            "ttl_minutes": int(OTP_TTL.total_seconds() // 60),
            "brand": ctx.settings.MAIL_SENDER_NAME,
            "logo_url": ctx.settings.LOGO_URL,
        })
        await ctx.mailer.send(to=email, doc=doc)
    except (GoogleAPIError, MailDeliveryError) as e:
        log.error("otp_send_failed", extra={"email": email, "error": str(e)})
        raise UpstreamFailure(f"Failed to send OTP: {e}") from e

    OTP_SENT.inc()
    log.info("otp_sent", extra={"email": email, "uid": uid or "not provided"})


async def evaluate_and_maybe_expire(
    db: AsyncClient, record: OtpRecord, now: datetime
) -> Tuple[bool, OtpState]:
    """Decide whether ``record`` may still be tried; terminal states delete it."""
    if now > record.expires_at:
        state = OtpState.EXPIRED
    elif record.attempts >= MAX_ATTEMPTS:
        state = OtpState.EXHAUSTED
    else:
        return True, OtpState.ACTIVE

    await otp_repo.delete(db, record.email)
    return False, state


async def verify_code(
    ctx: AppContext,
    *,
    email: Optional[str],
    code: Optional[Union[str, int]],
    uid: Optional[str] = None,
) -> Reconciliation:
    """Check ``code`` against the stored record and mark the owner verified.

    Check-then-increment: the attempt counter is read, checked against the
    limit and then written back as read+1. There is no per-email lock, so
    two concurrent verifies can both read the same counter value.
    """
    if not email or not code:
        raise ValidationError("Email and OTP are required")
    db = ctx.require_db()

    try:
        return await _verify(db, email=email, code=str(code), request_uid=uid)
    except ApiError as e:
        OTP_VERIFY.labels(outcome=type(e).__name__).inc()
        raise
    except Exception as e:
        # store outages and unreadable records alike
        OTP_VERIFY.labels(outcome="error").inc()
        log.exception("otp_verify_failed", extra={"email": email, "error": str(e)})
        raise VerificationFailed() from e


async def _verify(db: AsyncClient, *, email: str, code: str, request_uid: Optional[str]) -> Reconciliation:
    record = await otp_repo.get(db, email)
    if record is None:
        log.info("otp_missing", extra={"email": email})
        raise OtpNotFound()

    target_uid = record.uid or request_uid or None

    ok, state = await evaluate_and_maybe_expire(db, record, _now_utc())
    if not ok:
        if state is OtpState.EXPIRED:
            raise OtpExpired()
        raise AttemptsExhausted()

    attempts = record.attempts + 1
    await otp_repo.set_attempts(db, email, attempts)

    if record.code != code:
        raise InvalidCode(remaining_attempts=MAX_ATTEMPTS - attempts)

    outcome = await reconcile_user(db, email=email, target_uid=target_uid, full_name=record.full_name)
    await otp_repo.delete(db, email)

    OTP_VERIFY.labels(outcome="success").inc()
    log.info("email_verified", extra={"email": email, "uid": target_uid, "reconciliation": outcome.value})
    return outcome


async def reconcile_user(
    db: AsyncClient,
    *,
    email: str,
    target_uid: Optional[str],
    full_name: str = "",
) -> Reconciliation:
    """Find or create the user behind ``email`` and flag it email-verified.

    Order: the uid-keyed document, then every document whose ``email``
    matches (copying a mismatched one forward into users/{uid}), then a new
    document. Writes are not transactional.
    """
    if target_uid:
        if await users_repo.get_by_id(db, target_uid) is not None:
            await users_repo.mark_email_verified(db, target_uid)
            return Reconciliation.BY_UID
        log.info("user_not_found_by_uid", extra={"uid": target_uid})

    matches = await users_repo.find_by_email(db, email)
    for doc_id, data in matches:
        await users_repo.mark_email_verified(db, doc_id)
        if target_uid and doc_id != target_uid:
            log.warning("user_doc_id_mismatch", extra={"doc_id": doc_id, "uid": target_uid})
            await users_repo.merge_verified_copy(db, target_uid, data)
    if matches:
        return Reconciliation.BY_EMAIL

    user_id = target_uid or users_repo.new_user_id(db)
    await users_repo.create_verified(db, user_id, email=email, full_name=full_name or DEFAULT_FULL_NAME)
    log.info("user_created", extra={"uid": user_id, "email": email})
    return Reconciliation.CREATED
