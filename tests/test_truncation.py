"""Tests for fitting messages into the length budget."""

import pytest

from services.error import SizeExceededError, TruncationInvariantError
from services.formatter import DEFAULT_TEMPLATE, format_envelope
from services.message import AttachmentKind, ContentPart, Envelope, PartRole
from services.truncation import (
    BODY_TRUNCATED,
    FULL_MESSAGE_CAPTION,
    FULL_MESSAGE_FILENAME,
    TELEGRAM_MAX_MESSAGE_LENGTH,
    truncate,
)

TEMPLATE = "Subject: {subject}\\n\\n{body}"
PREFIX = "Subject: s\n\n"


def _draft(body, template=TEMPLATE, parts=()):
    env = Envelope(sender="from@test", recipients=("to@test",), subject="s", text=body, parts=parts)
    return format_envelope(env, template, 0, 1024)


def test_short_message_is_unchanged():
    draft = _draft("hi")
    result = truncate(draft, 4095, 10_000)
    assert result.text == PREFIX + "hi"
    assert result.attachments == ()


def test_message_at_threshold_is_unchanged():
    draft = _draft("a" * 38)
    assert len(draft.text) == 50
    result = truncate(draft, 50, 10_000)
    assert result.text == draft.text
    assert result.attachments == ()


def test_long_message_is_truncated_with_full_text_attached():
    draft = _draft("a" * 100)
    result = truncate(draft, 50, 10_000)

    assert result.text == PREFIX + "a" * 24 + BODY_TRUNCATED
    assert len(result.text) <= 50
    assert result.text.endswith("[truncated]")

    full = result.attachments[0]
    assert full.filename == FULL_MESSAGE_FILENAME
    assert full.caption == FULL_MESSAGE_CAPTION
    assert full.kind is AttachmentKind.DOCUMENT
    assert full.content == draft.text.encode("utf-8")


def test_one_character_over_threshold():
    draft = _draft("a" * 39)
    assert len(draft.text) == 51
    result = truncate(draft, 50, 10_000)
    assert len(result.text) < len(draft.text)
    assert result.text.endswith(BODY_TRUNCATED)
    assert result.attachments[0].content == draft.text.encode("utf-8")


def test_full_message_goes_before_other_attachments():
    parts = (
        ContentPart("a.txt", "text/plain", b"A", PartRole.ATTACHMENT),
        ContentPart("b.txt", "text/plain", b"B", PartRole.ATTACHMENT),
    )
    draft = _draft("a" * 100, template="{body}", parts=parts)
    result = truncate(draft, 50, 10_000)
    assert [a.filename for a in result.attachments] == [FULL_MESSAGE_FILENAME, "a.txt", "b.txt"]


def test_template_too_long_gives_hard_cut():
    draft = _draft("a" * 100)
    result = truncate(draft, 20, 10_000)
    assert result.text == draft.text[:20]
    assert len(result.text) == 20
    assert result.attachments[0].filename == FULL_MESSAGE_FILENAME


def test_template_exactly_at_threshold_gives_hard_cut():
    draft = _draft("a" * 100)
    empty_len = len(PREFIX + "." + BODY_TRUNCATED)
    result = truncate(draft, empty_len, 10_000)
    assert result.text == draft.text[:empty_len]


def test_full_message_too_large_raises():
    draft = _draft("a" * 100)
    with pytest.raises(SizeExceededError):
        truncate(draft, 50, 100)


def test_size_limit_counts_bytes():
    """Characters are counted for the budget, bytes for the attachment size."""
    draft = _draft("😀" * 100)
    assert len(draft.text) == 112
    with pytest.raises(SizeExceededError):
        truncate(draft, 50, 200)

    result = truncate(draft, 50, 1000)
    assert result.text == PREFIX + "😀" * 24 + BODY_TRUNCATED
    assert len(result.text) == 49


def test_threshold_above_platform_limit_is_capped():
    draft = _draft("a" * 5000, template=DEFAULT_TEMPLATE)
    result = truncate(draft, 10_000, 100_000)
    assert len(result.text) <= TELEGRAM_MAX_MESSAGE_LENGTH
    assert result.text.endswith(BODY_TRUNCATED)
    assert result.attachments[0].filename == FULL_MESSAGE_FILENAME


@pytest.mark.parametrize("body_len", [0, 1, 100, 4000, 4096, 5000, 20_000])
@pytest.mark.parametrize("template", [TEMPLATE, DEFAULT_TEMPLATE, "{body}", "{from} {body} {to}"])
def test_result_never_exceeds_limit(body_len, template):
    draft = _draft("x" * body_len, template=template)
    result = truncate(draft, 4095, 1_000_000)
    assert len(result.text) <= 4095


def test_body_used_twice_breaks_invariant():
    draft = _draft("x" * 100, template="{body} {body}")
    with pytest.raises(TruncationInvariantError):
        truncate(draft, 50, 10_000)
