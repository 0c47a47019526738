import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

import services.error  # installs global uncaught-exception hook
import services.logger as log
import services.util as u
import services.config_io as config_io
from services.bridge import Bridge
from services.config_schema import AppConfig
from services.error import MailBridgeError, rejection_reply
from services.intake import parse_message
from drivers.telegram import TelegramClient

l = log.get_logger()

# CLI option → config key; every option defaults to None so that only options
# given on the command line override the file and the environment.
_OVERRIDES = {
    "smtp_listen":                         str,
    "smtp_primary_host":                   str,
    "smtp_max_envelope_size":              str,
    "telegram_chat_ids":                   str,
    "telegram_bot_token":                  str,
    "telegram_api_prefix":                 str,
    "telegram_api_timeout_seconds":        float,
    "message_template":                    str,
    "forwarded_attachment_max_size":       str,
    "forwarded_attachment_max_photo_size": str,
    "forwarded_attachment_respect_errors": str,
    "message_length_to_send_as_file":      int,
}


def load_app_config(args: argparse.Namespace) -> AppConfig:
    """Merge config file < ST_* environment < command line, then validate.

    Exits with status 1 and a readable message when the result is invalid.
    """
    raw: dict = {}

    if args.config:
        config_path = Path(args.config)
        if not config_path.is_file():
            print(f"Error: config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
    else:
        config_path = config_io.find_config(Path(u.get_data_path()))

    if config_path is not None:
        try:
            raw.update(config_io.load_config(config_path))
        except Exception as e:
            print(f"Error reading {config_path}: {e}", file=sys.stderr)
            sys.exit(1)
        l.debug(f"Loaded config from: {config_path}")

    raw.update(config_io.load_env(set(AppConfig.model_fields)))
    raw.update({k: v for k in _OVERRIDES if (v := getattr(args, k)) is not None})

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as exc:
        print(f"Config error:\n{exc}", file=sys.stderr)
        sys.exit(1)

    log.register_sensitive(config.secrets)
    return config


async def cmd_send(config: AppConfig, args: argparse.Namespace) -> int:
    if args.file == "-":
        raw = sys.stdin.buffer.read()
    else:
        try:
            raw = Path(args.file).read_bytes()
        except OSError as e:
            print(f"Error reading {args.file}: {e}", file=sys.stderr)
            return 1

    envelope = parse_message(raw, sender=args.mail_from or "", recipients=args.rcpt_to or ())

    client = TelegramClient(
        config.telegram_bot_token,
        api_prefix=config.telegram_api_prefix,
        timeout_seconds=config.telegram_api_timeout_seconds,
    )
    bridge = Bridge.from_config(config, client)
    try:
        with services.error.catch_and_log("send"):
            await bridge.notify(envelope)
    except MailBridgeError as e:
        print(rejection_reply(e, config.secrets), file=sys.stderr)
        return 1
    finally:
        await client.close()

    print("250 OK")
    return 0


def cmd_check(config: AppConfig) -> int:
    print(f"Listen address: {config.smtp_listen} ({config.smtp_primary_host})")
    for dest in config.destinations:
        if dest.sender:
            print(f"  chat {dest.chat_id}  <- mail from {dest.sender}*")
        else:
            print(f"  chat {dest.chat_id}  <- all mail")
    print("Config OK")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mailbridge",
        description="Relay inbound mail to Telegram chats",
    )
    parser.add_argument("--config", help="Config file (json/yaml/toml); default: first config.* in the data dir")
    parser.add_argument("--log-dir", help="Also write DEBUG logs to a timestamped file in this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show DEBUG logs on the console")

    for key, typ in _OVERRIDES.items():
        parser.add_argument("--" + key.replace("_", "-"), dest=key, type=typ, default=None)

    subparsers = parser.add_subparsers(dest="command", required=True)

    send = subparsers.add_parser("send", help="Relay one raw RFC 5322 message")
    send.add_argument("file", nargs="?", default="-", help="Message file, or - for stdin (default)")
    send.add_argument("--mail-from", help="Envelope sender (default: From header)")
    send.add_argument("--rcpt-to", action="append", help="Envelope recipient, repeatable (default: To header)")

    subparsers.add_parser("check", help="Validate the configuration and list destinations")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        log.set_console_level(logging.DEBUG)
    if args.log_dir:
        log.enable_file_logging(args.log_dir)

    config = load_app_config(args)

    if args.command == "check":
        return cmd_check(config)
    return asyncio.run(cmd_send(config, args))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
