import logging
from collections.abc import Iterable, Sequence

import services.logger as log
from drivers import BaseDeliveryClient
from services.error import AttachmentDeliveryError, DeliveryError, escape_multiline, redact
from services.formatter import DEFAULT_TEMPLATE, format_envelope
from services.message import Destination, Envelope, FormattedNotification
from services.truncation import truncate


class Bridge:
    """
    Relays inbound mail to the configured chats.

    The intake side calls ``notify`` once per envelope.  The envelope is
    formatted, fitted into the message length budget and then sent to every
    destination in configured order, one request at a time.

    A failure to deliver the text to any destination fails the whole
    envelope, so the sender's mail server can retry later.  Attachment
    failures only do so when ``respect_attachment_errors`` is set.
    """

    def __init__(
        self,
        client: BaseDeliveryClient,
        destinations: Sequence[Destination],
        *,
        template: str = DEFAULT_TEMPLATE,
        photo_max_size: int = 10 * 1000 * 1000,
        document_max_size: int = 10 * 1000 * 1000,
        send_as_file_threshold: int = 4095,
        respect_attachment_errors: bool = False,
        secrets: Iterable[str] = (),
        logger: logging.Logger | None = None,
    ):
        self._client = client
        self._destinations = tuple(destinations)
        self._template = template
        self._photo_max_size = photo_max_size
        self._document_max_size = document_max_size
        self._send_as_file_threshold = send_as_file_threshold
        self._respect_attachment_errors = respect_attachment_errors
        self._secrets = frozenset(s for s in secrets if s)
        self._l = logger or log.get_logger()

    @classmethod
    def from_config(cls, config, client: BaseDeliveryClient, logger: logging.Logger | None = None) -> "Bridge":
        return cls(
            client,
            config.destinations,
            template=config.message_template,
            photo_max_size=config.forwarded_attachment_max_photo_size,
            document_max_size=config.forwarded_attachment_max_size,
            send_as_file_threshold=config.message_length_to_send_as_file,
            respect_attachment_errors=config.forwarded_attachment_respect_errors,
            secrets=config.secrets,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def format(self, envelope: Envelope) -> FormattedNotification:
        draft = format_envelope(
            envelope,
            self._template,
            self._photo_max_size,
            self._document_max_size,
            logger=self._l,
        )
        return truncate(
            draft,
            self._send_as_file_threshold,
            self._document_max_size,
            logger=self._l,
        )

    async def notify(self, envelope: Envelope) -> None:
        """Format *envelope* and deliver it to every matching destination.

        :raises MailBridgeError: when the envelope must be rejected.
        """
        notification = self.format(envelope)
        await self.dispatch(notification, envelope.sender)

    async def dispatch(self, notification: FormattedNotification, sender: str) -> None:
        for dest in self._destinations:
            if not dest.matches(sender):
                self._l.debug(f"Skipping chat {dest.chat_id}: sender {sender!r} does not match {dest.sender!r}")
                continue

            try:
                receipt = await self._client.send_text(dest.chat_id, notification.text)
            except Exception as e:
                # If unable to send at least one message, reject the whole mail
                raise DeliveryError(self._sanitize(e)) from None
            self._l.info(f"Relayed mail from {sender!r} to chat {dest.chat_id}")

            for attachment in notification.attachments:
                try:
                    await self._client.send_attachment(dest.chat_id, receipt, attachment)
                except Exception as e:
                    msg = self._sanitize(e)
                    if self._respect_attachment_errors:
                        raise AttachmentDeliveryError(msg) from None
                    self._l.error(f"Ignoring attachment sending error: {msg}")

    def _sanitize(self, exc: Exception) -> str:
        return escape_multiline(redact(str(exc) or type(exc).__name__, self._secrets))
