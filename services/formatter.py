"""Render an inbound mail into notification text.

Templates are plain strings with a fixed set of placeholders::

    {from} {to} {subject} {body} {attachments_details}

plus the two-character escape ``\\n`` for a newline, so a template can be
passed on a single line through an environment variable.  Substitution is a
single left-to-right pass: text inserted for one placeholder is never scanned
for further placeholders.
"""

import logging
import re
from dataclasses import dataclass

import services.logger as log
from services.media import classify, human_size
from services.message import (
    AttachmentKind,
    ContentPart,
    Decision,
    Envelope,
    OutgoingAttachment,
    PartRole,
)

DEFAULT_TEMPLATE = "From: {from}\\nTo: {to}\\nSubject: {subject}\\n\\n{body}\\n\\n{attachments_details}"

ROLE_ICONS = {
    PartRole.INLINE:     "🔗",
    PartRole.ATTACHMENT: "📎",
    PartRole.OTHER:      "❔",
}

SENDING = "sending..."
DISCARDED = "discarded"

_TOKENS = ("\\n", "{from}", "{to}", "{subject}", "{body}", "{attachments_details}")
_TOKEN_RE = re.compile("|".join(re.escape(t) for t in _TOKENS))


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute placeholders in *template* and strip the result.

    *values* maps placeholder names (without braces) to their text; the
    newline escape is handled here.
    """
    def _sub(m: re.Match) -> str:
        token = m.group(0)
        if token == "\\n":
            return "\n"
        return values.get(token[1:-1], "")

    return _TOKEN_RE.sub(_sub, template).strip()


@dataclass(frozen=True)
class TemplateContext:
    """Everything needed to render a template, so the body can be swapped later."""
    template: str
    sender: str
    recipients: str
    subject: str
    body: str
    attachments_details: str

    def render(self, body: str | None = None) -> str:
        return render_template(self.template, {
            "from":                self.sender,
            "to":                  self.recipients,
            "subject":             self.subject,
            "body":                (self.body if body is None else body).strip(),
            "attachments_details": self.attachments_details,
        })


@dataclass(frozen=True)
class Draft:
    """Output of the formatter: full text and the attachments worth forwarding."""
    context: TemplateContext
    text: str
    attachments: tuple[OutgoingAttachment, ...]


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def format_envelope(
    envelope: Envelope,
    template: str,
    photo_max_size: int,
    document_max_size: int,
    logger: logging.Logger | None = None,
) -> Draft:
    l = logger or log.get_logger()

    text = envelope.text
    text_bytes = text.encode("utf-8")

    details: list[str] = []
    attachments: list[OutgoingAttachment] = []

    for role in (PartRole.INLINE, PartRole.ATTACHMENT, PartRole.OTHER):
        for part in envelope.parts:
            if part.role is not role:
                continue
            # The body itself, repeated as a part
            if text and part.content == text_bytes:
                continue
            if not text and _is_untitled_text(part):
                text, text_bytes = _decode(part.content), part.content
                continue

            cp = classify(part, photo_max_size, document_max_size)
            if cp.forwarded:
                kind = AttachmentKind.PHOTO if cp.decision is Decision.PHOTO else AttachmentKind.DOCUMENT
                attachments.append(OutgoingAttachment(
                    filename=part.filename,
                    caption=part.filename,
                    content=part.content,
                    kind=kind,
                ))

            details.append(
                f"- {ROLE_ICONS[role]} {part.filename} ({cp.content_type}) "
                f"{human_size(part.size)}, {SENDING if cp.forwarded else DISCARDED}"
            )

    for err in envelope.errors:
        l.error(f"Envelope error: {err}")

    if not text:
        text = envelope.raw

    attachments_details = ""
    if details:
        attachments_details = "Attachments:\n" + "\n".join(details)

    context = TemplateContext(
        template=template,
        sender=envelope.sender,
        recipients=", ".join(envelope.recipients),
        subject=envelope.subject,
        body=text,
        attachments_details=attachments_details,
    )
    return Draft(context=context, text=context.render(), attachments=tuple(attachments))


def _is_untitled_text(part: ContentPart) -> bool:
    return part.content_type == "text/plain" and not part.filename
