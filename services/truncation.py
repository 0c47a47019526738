import logging

import services.logger as log
from services.error import SizeExceededError, TruncationInvariantError, raise_and_log
from services.formatter import Draft
from services.message import AttachmentKind, FormattedNotification, OutgoingAttachment

# Bot API limit for the text of a single message, in characters
TELEGRAM_MAX_MESSAGE_LENGTH = 4096

BODY_TRUNCATED = "\n\n[truncated]"

FULL_MESSAGE_FILENAME = "full_message.txt"
FULL_MESSAGE_CAPTION = "Full message"


def truncate(
    draft: Draft,
    send_as_file_threshold: int,
    max_attachment_size: int,
    logger: logging.Logger | None = None,
) -> FormattedNotification:
    """
    Fit *draft* into a single chat message.

    Text no longer than *send_as_file_threshold* characters (capped at
    ``TELEGRAM_MAX_MESSAGE_LENGTH``) is returned as is.  Longer text is cut
    down and the untouched full text is attached first as
    ``full_message.txt``.

    :raises SizeExceededError: if the full text is larger than
        *max_attachment_size* bytes and therefore cannot be attached.
    :raises TruncationInvariantError: if the cut text still exceeds the limit.
    """
    l = logger or log.get_logger()
    limit = min(send_as_file_threshold, TELEGRAM_MAX_MESSAGE_LENGTH)
    full_text = draft.text

    if len(full_text) <= limit:
        return FormattedNotification(text=full_text, attachments=draft.attachments)

    content = full_text.encode("utf-8")
    if len(content) > max_attachment_size:
        raise SizeExceededError(
            f"The message length ({len(content)}) is larger than "
            f"`forwarded-attachment-max-size` ({max_attachment_size})"
        )

    text = _truncated_text(draft, limit, l)
    l.debug(f"Message truncated from {len(full_text)} to {len(text)} characters")

    full_message = OutgoingAttachment(
        filename=FULL_MESSAGE_FILENAME,
        caption=FULL_MESSAGE_CAPTION,
        content=content,
        kind=AttachmentKind.DOCUMENT,
    )
    return FormattedNotification(text=text, attachments=(full_message, *draft.attachments))


def _truncated_text(draft: Draft, limit: int, l: logging.Logger) -> str:
    empty_text = draft.context.render(body="." + BODY_TRUNCATED)
    if len(empty_text) >= limit:
        # Not even the template fits; a hard cut is all we can do
        l.warning(
            f"Message template alone is {len(empty_text)} characters, "
            f"cutting the message at {limit}"
        )
        return draft.text[:limit]

    max_body_length = limit - len(empty_text)
    # TODO cut at paragraph boundaries instead of mid-sentence
    body = draft.context.body.strip()[:max_body_length] + BODY_TRUNCATED
    text = draft.context.render(body=body)

    if len(text) > limit:
        raise_and_log(
            f"Unexpected length of truncated message: {len(text)} > {limit} "
            f"(body budget {max_body_length})",
            TruncationInvariantError,
        )
    return text
