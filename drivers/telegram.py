# Telegram delivery client, talking to the Bot API directly over aiohttp.
#
# Send text:        POST {api_prefix}bot{token}/sendMessage   (form-encoded)
#                   fields: chat_id, text
# Send attachment:  POST {api_prefix}bot{token}/sendDocument | sendPhoto
#                   (multipart) fields: chat_id, reply_to_message_id, caption
#                   and a file part named "document" or "photo"
#
# The API prefix is configurable so that a self-hosted Bot API server (or a
# fake one in tests) can be used.  Proxies are honoured through the usual
# HTTP(S)_PROXY environment variables.
#
# Failures are raised as DeliveryError with a single-line description; they
# are never retried here.

import asyncio
import json
import logging

import aiohttp

import services.logger as log
from services.error import DeliveryError, escape_multiline
from services.message import AttachmentKind, DeliveryReceipt, OutgoingAttachment
from drivers import BaseDeliveryClient

DEFAULT_API_PREFIX = "https://api.telegram.org/"

_METHODS = {
    AttachmentKind.DOCUMENT: "sendDocument",
    AttachmentKind.PHOTO:    "sendPhoto",
}


class TelegramClient(BaseDeliveryClient):

    def __init__(
        self,
        bot_token: str,
        api_prefix: str = DEFAULT_API_PREFIX,
        timeout_seconds: float = 30,
        session: aiohttp.ClientSession | None = None,
        logger: logging.Logger | None = None,
    ):
        self._bot_token = bot_token
        self._api_prefix = api_prefix
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None
        self._l = logger or log.get_logger()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(trust_env=True)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, method: str) -> str:
        return f"{self._api_prefix}bot{self._bot_token}/{method}"

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send_text(self, chat_id: str, text: str) -> DeliveryReceipt:
        status, body = await self._post(
            self._url("sendMessage"),
            params={"disable_web_page_preview": "true"},
            data={"chat_id": chat_id, "text": text},
        )
        if status != 200:
            raise DeliveryError(
                f"Non-200 response from Telegram: ({status}) {escape_multiline(body)}"
            )

        try:
            result = json.loads(body)
        except ValueError as e:
            raise DeliveryError(f"Error parsing json body of sendMessage: {e}")

        if not isinstance(result, dict) or result.get("ok") is not True:
            raise DeliveryError(f"ok != true: {escape_multiline(body)}")

        message = result.get("result") or {}
        message_id = message.get("message_id") if isinstance(message, dict) else None
        if message_id is None:
            raise DeliveryError(f"No message_id in sendMessage result: {escape_multiline(body)}")

        self._l.debug(f"Telegram sendMessage to {chat_id} ok, message_id={message_id}")
        return DeliveryReceipt(message_id=str(message_id))

    async def send_attachment(
        self, chat_id: str, receipt: DeliveryReceipt, attachment: OutgoingAttachment
    ) -> None:
        method = _METHODS[attachment.kind]

        # TODO reuse the file_id returned by the first upload for further chats
        form = aiohttp.FormData()
        form.add_field("chat_id", chat_id)
        form.add_field("reply_to_message_id", receipt.message_id)
        form.add_field("caption", attachment.caption)
        form.add_field(
            attachment.kind.value,
            attachment.content,
            filename=attachment.filename,
            content_type="application/octet-stream",
        )

        status, body = await self._post(
            self._url(method),
            params={"disable_notification": "true"},
            data=form,
        )
        if status != 200:
            raise DeliveryError(
                f"Non-200 response from Telegram: ({status}) {escape_multiline(body)}"
            )
        self._l.debug(f"Telegram {method} {attachment.filename!r} to {chat_id} ok")

    async def _post(self, url: str, params: dict, data) -> tuple[int, str]:
        session = self._get_session()
        try:
            async with session.post(url, params=params, data=data, timeout=self._timeout) as resp:
                return resp.status, await resp.text(errors="replace")
        except asyncio.TimeoutError:
            raise DeliveryError(
                f"Telegram API request timed out after {self._timeout.total}s"
            ) from None
        except aiohttp.ClientError as e:
            raise DeliveryError(
                escape_multiline(f"Telegram API request failed: {e}")
            ) from None
