from datetime import timedelta

import pytest

from app.errors import (
    AttemptsExhausted, InvalidCode, OtpExpired, OtpNotFound, ServiceUnavailable,
    UpstreamFailure, ValidationError, VerificationFailed,
)
from app.repos.collections import COLLECTION_OTP
from app.repos.otp import OtpRecord
from app.services import otp as otp_service
from app.services.otp import MAX_ATTEMPTS, OtpState, evaluate_and_maybe_expire
from tests.conftest import stored_otp

pytestmark = pytest.mark.asyncio

EMAIL = "asha@example.test"


async def _issue(ctx, **kw) -> str:
    await otp_service.request_code(ctx, email=EMAIL, **kw)
    return stored_otp(ctx.db, EMAIL)["otp"]


async def test_request_code_stores_record_and_mails_code(ctx, db, mailer, clock):
    await otp_service.request_code(ctx, email=EMAIL, full_name="Asha Rao", uid="uid-1")

    rec = stored_otp(db, EMAIL)
    assert rec["email"] == EMAIL
    assert rec["fullName"] == "Asha Rao"
    assert rec["uid"] == "uid-1"
    assert rec["attempts"] == 0
    assert rec["expiresAt"] == clock.now + timedelta(minutes=10)
    assert len(rec["otp"]) == 6 and rec["otp"].isdigit()

    assert mailer.sent_to() == [EMAIL]
    doc = mailer.sent[0][1]
    assert rec["otp"] in doc.html
    assert "Asha Rao" in doc.html
    assert "10 minutes" in doc.html


async def test_request_code_without_name_or_uid(ctx, db, mailer, clock):
    await otp_service.request_code(ctx, email=EMAIL)
    rec = stored_otp(db, EMAIL)
    assert rec["fullName"] == ""
    assert rec["uid"] is None
    assert "Hello there!" in mailer.sent[0][1].html


async def test_request_code_requires_email(ctx, db, mailer):
    with pytest.raises(ValidationError):
        await otp_service.request_code(ctx, email="")
    assert db.docs(COLLECTION_OTP) == {}
    assert mailer.sent == []


async def test_request_code_without_store_generates_nothing(ctx, mailer, monkeypatch):
    ctx.db = None
    calls = []
    monkeypatch.setattr(otp_service, "generate_code", lambda: calls.append(1) or "123456")
    with pytest.raises(ServiceUnavailable):
        await otp_service.request_code(ctx, email=EMAIL)
    assert calls == []
    assert mailer.sent == []


async def test_mail_failure_keeps_persisted_record(ctx, db, mailer, clock):
    mailer.fail_for.add(EMAIL)
    with pytest.raises(UpstreamFailure) as exc:
        await otp_service.request_code(ctx, email=EMAIL)
    assert exc.value.message.startswith("Failed to send OTP:")
    assert stored_otp(db, EMAIL) is not None


async def test_code_verifies_exactly_once(ctx, db, clock):
    code = await _issue(ctx)

    await otp_service.verify_code(ctx, email=EMAIL, code=code)
    assert stored_otp(db, EMAIL) is None

    with pytest.raises(OtpNotFound):
        await otp_service.verify_code(ctx, email=EMAIL, code=code)


async def test_wrong_code_counts_attempt_and_keeps_record(ctx, db, clock):
    code = await _issue(ctx)
    wrong = "000000" if code != "000000" else "111111"

    with pytest.raises(InvalidCode) as exc:
        await otp_service.verify_code(ctx, email=EMAIL, code=wrong)

    assert exc.value.remaining_attempts == 4
    assert exc.value.message == "Invalid code. 4 attempts remaining."
    assert stored_otp(db, EMAIL)["attempts"] == 1


async def test_sixth_call_after_five_misses_is_exhausted(ctx, db, clock):
    code = await _issue(ctx)
    wrong = "000000" if code != "000000" else "111111"

    remaining = []
    for _ in range(MAX_ATTEMPTS):
        with pytest.raises(InvalidCode) as exc:
            await otp_service.verify_code(ctx, email=EMAIL, code=wrong)
        remaining.append(exc.value.remaining_attempts)
    assert remaining == [4, 3, 2, 1, 0]
    assert stored_otp(db, EMAIL)["attempts"] == 5

    # even the right code is refused now
    with pytest.raises(AttemptsExhausted):
        await otp_service.verify_code(ctx, email=EMAIL, code=code)
    assert stored_otp(db, EMAIL) is None


async def test_correct_code_on_fifth_attempt_still_succeeds(ctx, db, clock):
    code = await _issue(ctx)
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(4):
        with pytest.raises(InvalidCode):
            await otp_service.verify_code(ctx, email=EMAIL, code=wrong)

    await otp_service.verify_code(ctx, email=EMAIL, code=code)
    assert stored_otp(db, EMAIL) is None


async def test_expired_code_is_rejected_and_removed(ctx, db, clock):
    code = await _issue(ctx)
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(OtpExpired):
        await otp_service.verify_code(ctx, email=EMAIL, code=code)
    assert stored_otp(db, EMAIL) is None


async def test_code_valid_right_at_expiry(ctx, db, clock):
    code = await _issue(ctx)
    clock.advance(minutes=10)
    await otp_service.verify_code(ctx, email=EMAIL, code=code)


async def test_second_request_replaces_first(ctx, db, clock, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr(otp_service, "generate_code", lambda: next(codes))

    await otp_service.request_code(ctx, email=EMAIL)
    with pytest.raises(InvalidCode):
        await otp_service.verify_code(ctx, email=EMAIL, code="999999")
    assert stored_otp(db, EMAIL)["attempts"] == 1

    clock.advance(minutes=3)
    await otp_service.request_code(ctx, email=EMAIL)
    rec = stored_otp(db, EMAIL)
    assert rec["otp"] == "222222"
    assert rec["attempts"] == 0
    assert rec["expiresAt"] == clock.now + timedelta(minutes=10)

    with pytest.raises(InvalidCode):
        await otp_service.verify_code(ctx, email=EMAIL, code="111111")
    await otp_service.verify_code(ctx, email=EMAIL, code="222222")


async def test_verify_requires_email_and_code(ctx):
    with pytest.raises(ValidationError):
        await otp_service.verify_code(ctx, email=EMAIL, code="")
    with pytest.raises(ValidationError):
        await otp_service.verify_code(ctx, email=None, code="123456")


async def test_store_failure_during_verify_is_generic(ctx, db, clock):
    code = await _issue(ctx)
    db.fail("update", COLLECTION_OTP)

    with pytest.raises(VerificationFailed) as exc:
        await otp_service.verify_code(ctx, email=EMAIL, code=code)
    assert exc.value.status_code == 500
    assert exc.value.message == "Failed to verify OTP"


async def test_expiry_wins_over_exhaustion(db, clock):
    rec = OtpRecord(email=EMAIL, code="123456", expires_at=clock.now - timedelta(seconds=1), attempts=5)
    db.put(COLLECTION_OTP, EMAIL, {"email": EMAIL})

    ok, state = await evaluate_and_maybe_expire(db, rec, clock.now)
    assert (ok, state) == (False, OtpState.EXPIRED)
    assert stored_otp(db, EMAIL) is None


async def test_live_record_is_left_alone(db, clock):
    rec = OtpRecord(email=EMAIL, code="123456", expires_at=clock.now + timedelta(minutes=1), attempts=4)
    db.put(COLLECTION_OTP, EMAIL, {"email": EMAIL})

    ok, state = await evaluate_and_maybe_expire(db, rec, clock.now)
    assert (ok, state) == (True, OtpState.ACTIVE)
    assert stored_otp(db, EMAIL) is not None


async def test_generated_codes_are_six_digits_without_leading_zero():
    for _ in range(500):
        code = otp_service.generate_code()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


async def test_unreadable_record_is_generic_failure(ctx, db, clock):
    # stored without the code field
    db.put(COLLECTION_OTP, EMAIL, {"email": EMAIL, "expiresAt": clock.now, "attempts": 0})

    with pytest.raises(VerificationFailed) as exc:
        await otp_service.verify_code(ctx, email=EMAIL, code="123456")
    assert exc.value.message == "Failed to verify OTP"


async def test_numeric_code_is_compared_as_text(ctx, db, clock):
    code = await _issue(ctx)
    wrong = 100000 if code != "100000" else 100001

    with pytest.raises(InvalidCode):
        await otp_service.verify_code(ctx, email=EMAIL, code=wrong)
    assert stored_otp(db, EMAIL)["attempts"] == 1

    await otp_service.verify_code(ctx, email=EMAIL, code=int(code))
    assert stored_otp(db, EMAIL) is None
