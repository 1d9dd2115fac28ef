import pytest

from app.errors import InvalidFormat, ServiceUnavailable, UpstreamFailure, ValidationError
from app.repos.collections import COLLECTION_NEWSLETTER
from app.services import newsletter as newsletter_service

pytestmark = pytest.mark.asyncio


async def test_subscribe_stores_and_confirms(ctx, db, mailer):
    msg = await newsletter_service.subscribe(ctx, email="priya@example.test")

    assert msg == newsletter_service.MSG_SUBSCRIBED
    sub = db.docs(COLLECTION_NEWSLETTER)["priya@example.test"]
    assert sub["active"] is True
    assert sub["subscribedAt"] is not None
    assert mailer.sent_to() == ["priya@example.test"]
    assert "Newsletter" in mailer.sent[0][1].subject


async def test_resubscribe_is_quiet_success(ctx, db, mailer):
    await newsletter_service.subscribe(ctx, email="priya@example.test")
    writes_before, sends_before = len(db.writes), len(mailer.sent)

    msg = await newsletter_service.subscribe(ctx, email="priya@example.test")

    assert msg == newsletter_service.MSG_ALREADY
    assert len(db.writes) == writes_before
    assert len(mailer.sent) == sends_before
    assert len(db.docs(COLLECTION_NEWSLETTER)) == 1


@pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.d", "@example.com", "x@@y.z"])
async def test_malformed_addresses_rejected(ctx, mailer, email):
    with pytest.raises(InvalidFormat) as exc:
        await newsletter_service.subscribe(ctx, email=email)
    assert exc.value.status_code == 400
    assert mailer.sent == []


async def test_missing_email(ctx):
    with pytest.raises(ValidationError):
        await newsletter_service.subscribe(ctx, email=None)


async def test_store_unavailable(ctx):
    ctx.db = None
    with pytest.raises(ServiceUnavailable):
        await newsletter_service.subscribe(ctx, email="priya@example.test")


async def test_mail_failure_keeps_subscriber(ctx, db, mailer):
    mailer.fail_for.add("priya@example.test")
    with pytest.raises(UpstreamFailure) as exc:
        await newsletter_service.subscribe(ctx, email="priya@example.test")
    assert exc.value.message == "Failed to subscribe. Please try again."
    assert "priya@example.test" in db.docs(COLLECTION_NEWSLETTER)
