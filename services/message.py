from dataclasses import dataclass, field
from enum import Enum


class PartRole(str, Enum):
    """Where a content part was found in the original mail."""
    INLINE = "inline"
    ATTACHMENT = "attachment"
    OTHER = "other"


class Decision(str, Enum):
    PHOTO = "photo"
    DOCUMENT = "document"
    DISCARD = "discard"


class AttachmentKind(str, Enum):
    # Values double as the multipart field name expected by the Bot API
    DOCUMENT = "document"
    PHOTO = "photo"


@dataclass(frozen=True)
class ContentPart:
    """A named chunk of content carried by an inbound mail."""
    filename: str       # may be empty
    content_type: str   # declared type, e.g. "image/jpeg"
    content: bytes
    role: PartRole = PartRole.ATTACHMENT

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Envelope:
    """A parsed inbound mail, owned by exactly one processing pass."""
    sender: str
    recipients: tuple[str, ...] = ()
    subject: str = ""
    text: str = ""                        # plain-text body
    parts: tuple[ContentPart, ...] = ()
    raw: str = ""                         # un-parsed message, used as last-resort body
    errors: tuple[str, ...] = ()          # part-level parse problems


@dataclass(frozen=True)
class ClassifiedPart:
    part: ContentPart
    content_type: str   # resolved type
    decision: Decision

    @property
    def forwarded(self) -> bool:
        return self.decision is not Decision.DISCARD


@dataclass(frozen=True)
class OutgoingAttachment:
    filename: str
    caption: str
    content: bytes
    kind: AttachmentKind = AttachmentKind.DOCUMENT


@dataclass(frozen=True)
class FormattedNotification:
    """Final text plus the attachments to send as replies to it."""
    text: str
    attachments: tuple[OutgoingAttachment, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Destination:
    """A target chat, optionally restricted to mail from one sender."""
    chat_id: str
    sender: str = ""

    def matches(self, address: str) -> bool:
        if not self.sender:
            return True
        return address.startswith(self.sender)


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
