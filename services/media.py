# Attachment classification shared by the formatter.
#
# Decides, for each content part of an inbound mail, which content type it
# really has and whether it is forwarded to the chat as a photo, as a
# document, or not at all.
#
# Usage:
#   from services.media import classify
#   cp = classify(part, photo_max_size=10_000_000, document_max_size=10_000_000)
#   if cp.forwarded:
#       ...

import mimetypes

from services.message import ClassifiedPart, ContentPart, Decision

UNKNOWN_BINARY = "application/octet-stream"

# Types the Bot API renders as a photo.  image/gif is sent as a static image
# and image/x-ms-bmp ends up as a document, so both stay out.
PHOTO_TYPES = frozenset({
    "image/jpeg",
    "image/png",
})

_SIZE_UNITS = ("B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")


def guess_content_type(content_type: str, filename: str) -> str:
    """Return the declared type, or a guess from *filename* for generic binaries."""
    if content_type != UNKNOWN_BINARY:
        return content_type
    guessed = mimetypes.guess_type(filename)[0] if filename else None
    return guessed or content_type  # give up


def is_image(content_type: str) -> bool:
    return content_type in PHOTO_TYPES


def classify(part: ContentPart, photo_max_size: int, document_max_size: int) -> ClassifiedPart:
    """
    Resolve the content type of *part* and decide how to forward it.

    Photos are tried first, then documents.  A limit of 0 disables the
    corresponding path.
    """
    content_type = guess_content_type(part.content_type, part.filename)
    size = part.size

    if is_image(content_type) and 0 < photo_max_size and size <= photo_max_size:
        decision = Decision.PHOTO
    elif 0 < document_max_size and size <= document_max_size:
        decision = Decision.DOCUMENT
    else:
        decision = Decision.DISCARD

    return ClassifiedPart(part=part, content_type=content_type, decision=decision)


def human_size(size: float) -> str:
    """Format *size* bytes with decimal units and 4 significant digits (``3B``, ``1.5kB``)."""
    i = 0
    while size >= 1000 and i < len(_SIZE_UNITS) - 1:
        size /= 1000
        i += 1
    return f"{size:.4g}{_SIZE_UNITS[i]}"
