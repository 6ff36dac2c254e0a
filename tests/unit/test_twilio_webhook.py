import pytest
from sqlalchemy import select
from twilio.request_validator import RequestValidator

from omnibox.integrations.factory import SenderFactory, get_sender_factory
from omnibox.integrations.twilio_webhook import (
    extract_media_attachments, get_channel_from_number, is_status_callback,
    map_twilio_status, validate_twilio_signature
)
from omnibox.main import app
from omnibox.models.models import AnalyticsEvent, Contact, Message, MessageAttachment, Thread
from omnibox.services.message_service import message_service

WEBHOOK_URL = "http://test/api/webhooks/twilio"


def inbound_form(**overrides):
    form = {
        "MessageSid": "SMin1",
        "AccountSid": "ACtest",
        "From": "+15551234567",
        "To": "+15550000000",
        "Body": "Hello from the customer",
        "NumMedia": "0",
        "SmsStatus": "received",
    }
    form.update(overrides)
    return form


class TestWebhookHelpers:
    """Form parsing helpers."""

    def test_channel_from_number(self):
        assert get_channel_from_number("whatsapp:+15551234567") == "whatsapp"
        assert get_channel_from_number("+15551234567") == "sms"
        assert get_channel_from_number("") == "sms"

    def test_extract_media_attachments(self):
        form = {
            "NumMedia": "2",
            "MediaUrl0": "https://api.twilio.com/Media/ME0", "MediaContentType0": "image/jpeg",
            "MediaUrl1": "https://api.twilio.com/Media/ME1", "MediaContentType1": "video/mp4",
        }

        assert extract_media_attachments(form) == [
            {"url": "https://api.twilio.com/Media/ME0", "content_type": "image/jpeg"},
            {"url": "https://api.twilio.com/Media/ME1", "content_type": "video/mp4"},
        ]

    def test_media_entries_missing_fields_are_skipped(self):
        form = {"NumMedia": "2", "MediaUrl0": "https://api.twilio.com/Media/ME0"}
        assert extract_media_attachments(form) == []

    def test_bad_num_media_treated_as_zero(self):
        assert extract_media_attachments({"NumMedia": "lots"}) == []

    def test_media_capped_at_ten(self):
        form = {"NumMedia": "15"}
        for i in range(15):
            form[f"MediaUrl{i}"] = f"https://api.twilio.com/Media/ME{i}"
            form[f"MediaContentType{i}"] = "image/png"

        assert len(extract_media_attachments(form)) == 10

    @pytest.mark.parametrize("twilio_status,expected", [
        ("queued", "pending"),
        ("sending", "pending"),
        ("sent", "sent"),
        ("delivered", "delivered"),
        ("undelivered", "failed"),
        ("failed", "failed"),
        ("read", "read"),
        ("received", "delivered"),
        ("something-new", "pending"),
        (None, "pending"),
    ])
    def test_map_twilio_status(self, twilio_status, expected):
        assert map_twilio_status(twilio_status) == expected

    def test_inbound_is_not_status_callback(self):
        assert is_status_callback(inbound_form()) is False
        assert is_status_callback({"MessageSid": "SM1", "Body": "hi"}) is False

    def test_status_callback_detected(self):
        assert is_status_callback({"MessageSid": "SM1", "MessageStatus": "delivered"}) is True
        assert is_status_callback({"MessageSid": "SM1", "MessageStatus": "received"}) is True

    def test_signature_validation(self):
        params = {"MessageSid": "SM1", "Body": "hi"}
        signature = RequestValidator("test_token").compute_signature(WEBHOOK_URL, params)

        assert validate_twilio_signature("test_token", signature, WEBHOOK_URL, params) is True
        assert validate_twilio_signature("other_token", signature, WEBHOOK_URL, params) is False
        assert validate_twilio_signature("test_token", None, WEBHOOK_URL, params) is False
        assert validate_twilio_signature(None, signature, WEBHOOK_URL, params) is False


class TestTwilioWebhookRoute:
    """POST /api/webhooks/twilio"""

    async def test_get_probe(self, client):
        response = await client.get("/api/webhooks/twilio")

        assert response.status_code == 200
        assert response.json() == {"message": "Twilio webhook endpoint is active"}

    async def test_inbound_sms_is_stored(self, client, db_session):
        response = await client.post("/api/webhooks/twilio", data=inbound_form())

        assert response.status_code == 200
        assert response.json() == {"received": True}

        message = (await db_session.execute(
            select(Message).where(Message.external_id == "SMin1")
        )).scalars().one()
        assert message.direction == "inbound"
        assert message.channel == "sms"
        assert message.body == "Hello from the customer"
        assert message.from_address == "+15551234567"

        thread = await db_session.get(Thread, message.thread_id)
        await db_session.refresh(thread)
        assert thread.unread_count == 1

    async def test_inbound_whatsapp_with_media(self, client, db_session):
        form = inbound_form(
            MessageSid="MMwa1",
            From="whatsapp:+15551234567",
            To="whatsapp:+14155238886",
            Body="",
            NumMedia="1",
            MediaUrl0="https://api.twilio.com/Media/ME0",
            MediaContentType0="image/jpeg",
        )

        response = await client.post("/api/webhooks/twilio", data=form)

        assert response.status_code == 200
        message = (await db_session.execute(
            select(Message).where(Message.external_id == "MMwa1")
        )).scalars().one()
        assert message.channel == "whatsapp"
        assert message.from_address == "+15551234567"
        assert message.to_address == "+14155238886"
        assert message.body is None

        attachment = (await db_session.execute(
            select(MessageAttachment).where(MessageAttachment.message_id == message.id)
        )).scalars().one()
        assert attachment.url == "https://api.twilio.com/Media/ME0"
        assert attachment.filename == "ME0"

        contact = (await db_session.execute(select(Contact))).scalars().one()
        assert contact.phone == "+15551234567"

    async def test_status_callback_updates_message(self, client, db_session):
        await message_service.store_outbound_message(
            db_session, channel="sms", to_address="+15551234567", from_address="+15550000000",
            body="Hi", external_id="SMout1", status="pending"
        )

        response = await client.post("/api/webhooks/twilio", data={
            "MessageSid": "SMout1",
            "MessageStatus": "undelivered",
            "ErrorCode": "30003",
            "ErrorMessage": "Unreachable destination handset",
        })

        assert response.status_code == 200
        message = (await db_session.execute(
            select(Message).where(Message.external_id == "SMout1")
        )).scalars().one()
        await db_session.refresh(message)
        assert message.status == "failed"
        assert message.error_code == "30003"

        failed = (await db_session.execute(
            select(AnalyticsEvent).where(AnalyticsEvent.event_type == "message_failed")
        )).scalars().all()
        assert len(failed) == 1

    async def test_read_callback_sets_read_at(self, client, db_session):
        await message_service.store_outbound_message(
            db_session, channel="whatsapp", to_address="+15551234567",
            from_address="+14155238886", body="Hi", external_id="SMout2", status="sent"
        )

        response = await client.post("/api/webhooks/twilio", data={
            "MessageSid": "SMout2", "MessageStatus": "read"
        })

        assert response.status_code == 200
        message = (await db_session.execute(
            select(Message).where(Message.external_id == "SMout2")
        )).scalars().one()
        await db_session.refresh(message)
        assert message.status == "read"
        assert message.read_at is not None

    async def test_status_for_unknown_message_is_acknowledged(self, client, db_session):
        response = await client.post("/api/webhooks/twilio", data={
            "MessageSid": "SMghost", "MessageStatus": "delivered"
        })

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert (await db_session.execute(select(AnalyticsEvent))).scalars().all() == []

    async def test_missing_message_sid(self, client):
        response = await client.post("/api/webhooks/twilio", data={"Body": "hi"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing MessageSid"}

    async def test_processing_failure_returns_500(self, client, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("database is gone")

        monkeypatch.setattr(message_service, "store_inbound_message", explode)

        response = await client.post("/api/webhooks/twilio", data=inbound_form())

        assert response.status_code == 500
        assert response.json() == {"error": "Webhook processing failed"}


class TestWebhookSignatureEnforcement:
    """Signatures are checked when validation is switched on."""

    @pytest.fixture
    def enforcing_factory(self, test_settings, mock_twilio_client, mock_sendgrid_client):
        config = test_settings.model_copy(update={"WEBHOOK_SIGNATURE_VALIDATION": True})
        factory = SenderFactory(config, twilio_client=mock_twilio_client, sendgrid_client=mock_sendgrid_client)
        app.dependency_overrides[get_sender_factory] = lambda: factory
        return factory

    async def test_missing_signature_rejected(self, client, enforcing_factory, db_session):
        response = await client.post("/api/webhooks/twilio", data=inbound_form())

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}
        assert (await db_session.execute(select(Message))).scalars().all() == []

    async def test_wrong_signature_rejected(self, client, enforcing_factory):
        response = await client.post(
            "/api/webhooks/twilio", data=inbound_form(),
            headers={"X-Twilio-Signature": "bm90LWEtc2lnbmF0dXJl"}
        )

        assert response.status_code == 401

    async def test_valid_signature_accepted(self, client, enforcing_factory):
        form = inbound_form()
        signature = RequestValidator("test_token").compute_signature(WEBHOOK_URL, form)

        response = await client.post(
            "/api/webhooks/twilio", data=form, headers={"X-Twilio-Signature": signature}
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}

    async def test_forwarded_host_is_used_for_signature(self, client, enforcing_factory):
        form = inbound_form()
        signature = RequestValidator("test_token").compute_signature(
            "https://inbox.example.com/api/webhooks/twilio", form
        )

        response = await client.post(
            "/api/webhooks/twilio", data=form,
            headers={
                "X-Twilio-Signature": signature,
                "X-Forwarded-Proto": "https",
                "X-Forwarded-Host": "inbox.example.com",
            }
        )

        assert response.status_code == 200
