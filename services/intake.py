"""Turn a raw RFC 5322 message into an :class:`Envelope`.

Leaf parts are sorted the way mail clients show them:

* the first untitled ``text/plain`` part is the body,
* the first untitled ``text/html`` part is the fallback body: when the mail
  has no plain text it is converted to text, otherwise it is dropped if it
  sits in a ``multipart/alternative`` and kept as an "other" part if not,
* parts with ``Content-Disposition: attachment`` (or any other part carrying
  a filename) are attachments,
* ``inline`` parts with a filename or a ``Content-ID`` (embedded images) are
  inline parts,
* everything else is kept as an "other" part.

Parsing never fails: problems are recorded in ``Envelope.errors`` and, if the
message can't be parsed at all, the envelope carries only the raw text.
"""

import email
import logging
import re
from email import policy
from email.message import EmailMessage
from html.parser import HTMLParser

import services.logger as log
from services.message import ContentPart, Envelope, PartRole


def parse_message(
    raw: bytes,
    sender: str = "",
    recipients: tuple[str, ...] | list[str] = (),
    logger: logging.Logger | None = None,
) -> Envelope:
    """
    Parse *raw* into an Envelope.

    *sender* and *recipients* come from the SMTP transaction (MAIL FROM /
    RCPT TO); when empty they fall back to the ``From`` / ``To`` headers.
    """
    l = logger or log.get_logger()
    raw_text = raw.decode("utf-8", errors="replace")

    try:
        msg = email.message_from_bytes(raw, policy=policy.default)
        return _build_envelope(msg, raw_text, sender, tuple(recipients))
    except Exception as e:
        l.error(f"Failed to parse message, relaying raw text: {e}")
        return Envelope(
            sender=sender,
            recipients=tuple(recipients),
            raw=raw_text,
            errors=(f"Error occurred during email parsing: {e}",),
        )


def _build_envelope(
    msg: EmailMessage, raw_text: str, sender: str, recipients: tuple[str, ...]
) -> Envelope:
    errors: list[str] = [f"{type(d).__name__}: {d}" for d in msg.defects]

    text = ""
    html_part: EmailMessage | None = None
    html_index: int | None = None
    parts: list[ContentPart] = []

    for part, parent in _leaves(msg, errors):
        content_type = part.get_content_type()
        disposition = part.get_content_disposition()
        filename = part.get_filename() or ""

        if disposition != "attachment" and not filename:
            if content_type == "text/plain" and not text:
                text = _text_content(part, errors)
                continue
            if content_type == "text/html" and html_part is None:
                html_part = part
                if parent == "multipart/alternative":
                    continue
                # Listed below; removed again if it ends up as the body
                html_index = len(parts)

        if disposition == "attachment" or (filename and disposition != "inline"):
            role = PartRole.ATTACHMENT
        elif disposition == "inline" or part.get("Content-ID"):
            role = PartRole.INLINE
        else:
            role = PartRole.OTHER

        parts.append(ContentPart(
            filename=filename,
            content_type=content_type,
            content=_payload(part, errors),
            role=role,
        ))

    if not text and html_part is not None:
        text = html_to_text(_text_content(html_part, errors))
        if html_index is not None:
            del parts[html_index]

    return Envelope(
        sender=sender or next(iter(_addresses(msg, "from")), ""),
        recipients=recipients or _addresses(msg, "to"),
        subject=_header(msg, "subject"),
        text=text,
        parts=tuple(parts),
        raw=raw_text,
        errors=tuple(errors),
    )


def _text_content(part: EmailMessage, errors: list[str]) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeError) as e:
        # Unknown or lying charset
        errors.append(f"Cannot decode text part: {e}")
        return _payload(part, errors).decode("utf-8", errors="replace")


def _payload(part: EmailMessage, errors: list[str]) -> bytes:
    payload = part.get_payload(decode=True)
    errors.extend(f"{type(d).__name__}: {d}" for d in part.defects)
    return payload or b""


def _header(msg: EmailMessage, name: str) -> str:
    value = msg.get(name)
    return str(value) if value is not None else ""


def _addresses(msg: EmailMessage, name: str) -> tuple[str, ...]:
    header = msg.get(name)
    if header is None:
        return ()
    addresses = getattr(header, "addresses", None)
    if addresses is None:
        return (str(header),)
    return tuple(a.addr_spec for a in addresses)


def _leaves(msg: EmailMessage, errors: list[str], parent: str = ""):
    """Yield ``(leaf part, content type of its container)`` in document order."""
    if not msg.is_multipart():
        yield msg, parent
        return
    errors.extend(f"{type(d).__name__}: {d}" for d in msg.defects)
    container = msg.get_content_type()
    for sub in msg.get_payload():
        yield from _leaves(sub, errors, container)


# ---------------------------------------------------------------------------
# HTML to text
# ---------------------------------------------------------------------------

# Tags that end a line, and tags that end a paragraph
_LINE_TAGS = {
    "address", "article", "br", "dd", "div", "dt", "footer", "header",
    "li", "section", "tr",
}
_PARAGRAPH_TAGS = {
    "blockquote", "dl", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "ol",
    "p", "pre", "table", "ul",
}
_SKIP_TAGS = {"head", "script", "style", "title"}


class _HTMLText(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.chunks: list[str] = []
        self._skip = 0

    def _break(self, tag):
        if tag in _PARAGRAPH_TAGS:
            newlines = "\n\n"
        elif tag in _LINE_TAGS:
            newlines = "\n"
        else:
            return
        # Adjacent breaks merge into the widest one
        if self.chunks and self.chunks[-1].strip("\n") == "":
            self.chunks[-1] = max(self.chunks[-1], newlines, key=len)
        else:
            self.chunks.append(newlines)

    def handle_starttag(self, tag, attrs):
        if tag in _SKIP_TAGS:
            self._skip += 1
        elif tag == "td":
            self.chunks.append(" ")
        else:
            self._break(tag)

    def handle_startendtag(self, tag, attrs):
        self._break(tag)

    def handle_endtag(self, tag):
        if tag in _SKIP_TAGS:
            self._skip = max(0, self._skip - 1)
        else:
            self._break(tag)

    def handle_data(self, data):
        if self._skip:
            return
        # Source indentation between blocks
        if data.isspace() and (not self.chunks or self.chunks[-1].strip("\n") == ""):
            return
        self.chunks.append(data)


def html_to_text(html: str) -> str:
    """Render an HTML body as plain text: tags dropped, blocks on their own lines."""
    parser = _HTMLText()
    parser.feed(html)
    parser.close()
    text = "".join(parser.chunks).replace("\xa0", " ")
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
