"""Pytest configuration and shared fixtures."""

import asyncio
from unittest.mock import MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from drivers import BaseDeliveryClient
from services.error import DeliveryError
from services.message import DeliveryReceipt

BOT_TOKEN = "42:ZZZ"


class FakeClient(BaseDeliveryClient):
    """In-memory delivery client recording every call."""

    def __init__(self, fail_text_for=(), fail_attachments_for=(), error_text="boom"):
        self.calls: list[tuple] = []
        self.fail_text_for = set(fail_text_for)
        self.fail_attachments_for = set(fail_attachments_for)
        self.error_text = error_text
        self._next_id = 1000

    async def send_text(self, chat_id, text):
        self.calls.append(("text", chat_id, text))
        if chat_id in self.fail_text_for:
            raise DeliveryError(self.error_text)
        self._next_id += 1
        return DeliveryReceipt(message_id=str(self._next_id))

    async def send_attachment(self, chat_id, receipt, attachment):
        self.calls.append(("attachment", chat_id, receipt.message_id, attachment.filename))
        if attachment.filename in self.fail_attachments_for:
            raise DeliveryError(self.error_text)

    def chats(self, kind="text"):
        return [c[1] for c in self.calls if c[0] == kind]


class FakeTelegramAPI:
    """Minimal stand-in for the Bot API: sendMessage, sendDocument, sendPhoto."""

    def __init__(self):
        self.prefix = ""
        self.paths: list[str] = []
        self.messages: list[dict] = []
        self.files: list[dict] = []
        self.status = 200
        self.error_body = "Bad Request:\nchat not found"
        self.message_response: object = {"ok": True, "result": {"message_id": 123123}}
        self.delay = 0.0

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/{tail:.*}", self._handle)
        return app

    async def _handle(self, request: web.Request) -> web.Response:
        self.paths.append(request.path_qs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.status != 200:
            return web.Response(status=self.status, text=self.error_body)

        method = request.path.rsplit("/", 1)[-1]
        form = await request.post()

        if method == "sendMessage":
            self.messages.append({k: form[k] for k in form})
            if isinstance(self.message_response, str):
                return web.Response(text=self.message_response)
            return web.json_response(self.message_response)

        if method in ("sendDocument", "sendPhoto"):
            field = "document" if method == "sendDocument" else "photo"
            upload = form[field]
            self.files.append({
                "method": method,
                "chat_id": form["chat_id"],
                "reply_to_message_id": form["reply_to_message_id"],
                "caption": form["caption"],
                "filename": upload.filename,
                "content": upload.file.read(),
            })
            return web.json_response({"ok": True, "result": {}})

        return web.Response(status=404, text="Error")


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def mock_logger():
    return MagicMock()


@pytest.fixture
async def telegram_api():
    api = FakeTelegramAPI()
    server = TestServer(api.make_app())
    await server.start_server()
    api.prefix = str(server.make_url("/"))
    yield api
    await server.close()
