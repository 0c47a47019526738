from __future__ import annotations

import socket
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from services.formatter import DEFAULT_TEMPLATE
from services.message import Destination
from services.util import parse_size


# ---------------------------------------------------------------------------
# Reusable coercions
# ---------------------------------------------------------------------------

def _coerce_bool(v: object) -> object:
    if isinstance(v, str):
        return v.lower() in ("true", "1", "yes")
    return v


def _coerce_size(v: object) -> object:
    if isinstance(v, (str, int)) and not isinstance(v, bool):
        return parse_size(v)
    return v


CoercedBool = Annotated[bool, BeforeValidator(_coerce_bool)]

# "5k", "10m", "1.5MB" or a plain byte count
HumanSize = Annotated[int, BeforeValidator(_coerce_size), Field(ge=0)]


def parse_destinations(value: str) -> list[Destination]:
    """
    Parse a comma-separated destination list.

    Each entry is either a bare chat id (``"-100123"``) or
    ``"<sender>:<chat id>"`` to only relay mail whose sender starts with
    ``<sender>`` (``"alerts@example.com:42"``).

    :raises ValueError: on an empty entry or an empty chat id.
    """
    destinations: list[Destination] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            raise ValueError(f"empty entry in chat id list {value!r}")
        sender, sep, chat_id = entry.partition(":")
        if not sep:
            sender, chat_id = "", entry
        sender, chat_id = sender.strip(), chat_id.strip()
        if not chat_id:
            raise ValueError(f"missing chat id in entry {entry!r}")
        destinations.append(Destination(chat_id=chat_id, sender=sender))
    return destinations


# ---------------------------------------------------------------------------
# Top-level application config
# ---------------------------------------------------------------------------

class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    # Passed through to the SMTP listener; not used by the relay itself
    smtp_listen:            str      = "127.0.0.1:2525"
    smtp_primary_host:      str      = Field(default_factory=socket.gethostname)
    smtp_max_envelope_size: HumanSize = 50 * 1000 * 1000

    telegram_chat_ids:            str
    telegram_bot_token:           str   = Field(min_length=1)
    telegram_api_prefix:          str   = "https://api.telegram.org/"
    telegram_api_timeout_seconds: float = Field(default=30, gt=0)

    message_template: str = DEFAULT_TEMPLATE

    forwarded_attachment_max_size:       HumanSize   = 10 * 1000 * 1000
    forwarded_attachment_max_photo_size: HumanSize   = 10 * 1000 * 1000
    forwarded_attachment_respect_errors: CoercedBool = False

    message_length_to_send_as_file: int = Field(default=4095, ge=1)

    @field_validator("telegram_chat_ids", mode="before")
    @classmethod
    def _join_chat_ids(cls, v: object) -> object:
        # YAML/TOML configs may give a single number or a list of entries
        if isinstance(v, (list, tuple)):
            return ",".join(str(x) for x in v)
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("telegram_chat_ids")
    @classmethod
    def _check_chat_ids(cls, v: str) -> str:
        parse_destinations(v)
        return v

    @field_validator("telegram_api_prefix")
    @classmethod
    def _check_api_prefix(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("must be an http:// or https:// URL")
        return v if v.endswith("/") else v + "/"

    @property
    def destinations(self) -> list[Destination]:
        return parse_destinations(self.telegram_chat_ids)

    @property
    def secrets(self) -> frozenset[str]:
        return frozenset({self.telegram_bot_token})
