"""Tests for the Telegram delivery client against a fake Bot API."""

import pytest

from conftest import BOT_TOKEN
from drivers.telegram import TelegramClient
from services.error import DeliveryError
from services.message import AttachmentKind, DeliveryReceipt, OutgoingAttachment


@pytest.fixture
async def client(telegram_api):
    c = TelegramClient(BOT_TOKEN, api_prefix=telegram_api.prefix, timeout_seconds=5)
    yield c
    await c.close()


async def test_send_text(client, telegram_api):
    receipt = await client.send_text("42", "hello\nworld")

    assert receipt == DeliveryReceipt(message_id="123123")
    assert telegram_api.messages == [{"chat_id": "42", "text": "hello\nworld"}]
    assert telegram_api.paths == [f"/bot{BOT_TOKEN}/sendMessage?disable_web_page_preview=true"]


async def test_send_text_http_error(client, telegram_api):
    telegram_api.status = 400
    with pytest.raises(DeliveryError) as exc_info:
        await client.send_text("42", "hello")
    msg = str(exc_info.value)
    assert msg == "Non-200 response from Telegram: (400) Bad Request:\\nchat not found"
    assert "\n" not in msg


async def test_send_text_not_ok(client, telegram_api):
    telegram_api.message_response = {"ok": False, "description": "nope"}
    with pytest.raises(DeliveryError, match="ok != true"):
        await client.send_text("42", "hello")


async def test_send_text_invalid_json(client, telegram_api):
    telegram_api.message_response = "not json"
    with pytest.raises(DeliveryError, match="Error parsing json body of sendMessage"):
        await client.send_text("42", "hello")


async def test_send_text_missing_message_id(client, telegram_api):
    telegram_api.message_response = {"ok": True, "result": {}}
    with pytest.raises(DeliveryError, match="No message_id"):
        await client.send_text("42", "hello")


async def test_send_document(client, telegram_api):
    att = OutgoingAttachment("hey.txt", "hey.txt", b"hi", AttachmentKind.DOCUMENT)
    await client.send_attachment("42", DeliveryReceipt("7"), att)

    assert telegram_api.files == [{
        "method": "sendDocument",
        "chat_id": "42",
        "reply_to_message_id": "7",
        "caption": "hey.txt",
        "filename": "hey.txt",
        "content": b"hi",
    }]
    assert telegram_api.paths == [f"/bot{BOT_TOKEN}/sendDocument?disable_notification=true"]


async def test_send_photo(client, telegram_api):
    att = OutgoingAttachment("a.jpg", "a.jpg", b"JPG", AttachmentKind.PHOTO)
    await client.send_attachment("42", DeliveryReceipt("7"), att)
    assert telegram_api.files[0]["method"] == "sendPhoto"
    assert telegram_api.files[0]["content"] == b"JPG"


async def test_send_attachment_http_error(client, telegram_api):
    telegram_api.status = 413
    att = OutgoingAttachment("big.bin", "big.bin", b"x", AttachmentKind.DOCUMENT)
    with pytest.raises(DeliveryError, match=r"\(413\)"):
        await client.send_attachment("42", DeliveryReceipt("7"), att)


async def test_timeout_is_a_delivery_error(telegram_api):
    telegram_api.delay = 1.0
    c = TelegramClient(BOT_TOKEN, api_prefix=telegram_api.prefix, timeout_seconds=0.1)
    try:
        with pytest.raises(DeliveryError, match="timed out"):
            await c.send_text("42", "hello")
    finally:
        await c.close()


async def test_unreachable_api():
    c = TelegramClient(BOT_TOKEN, api_prefix="http://127.0.0.1:1/", timeout_seconds=5)
    try:
        with pytest.raises(DeliveryError, match="request failed"):
            await c.send_text("42", "hello")
    finally:
        await c.close()


async def test_close_keeps_injected_session(telegram_api):
    import aiohttp

    async with aiohttp.ClientSession() as session:
        c = TelegramClient(BOT_TOKEN, api_prefix=telegram_api.prefix, session=session)
        await c.send_text("42", "hello")
        await c.close()
        assert not session.closed
