import logging
import sys
import os
from datetime import datetime

# ANSI colour codes
COLORS = {
    'DBG': '\033[36m',   # cyan
    'INF': '\033[32m',   # green
    'WRN': '\033[33m',   # yellow
    'ERR': '\033[31m',   # red
    'CRT': '\033[91m\033[1m',  # bold bright red
    'RST': '\033[0m'
}

IS_TTY = sys.stderr.isatty()


# Sensitive strings to redact from all log output.
# Populated by register_sensitive() after the config is loaded.
_sensitive: set[str] = set()

MIN_SENSITIVE_LENGTH = 8


def register_sensitive(values: frozenset[str]) -> None:
    """Register secret strings that must never appear in log output.

    Replaces any previous registration. Values shorter than
    ``MIN_SENSITIVE_LENGTH`` are ignored: they would mask ordinary words.
    """
    _sensitive.clear()
    _sensitive.update(v for v in values if len(v) >= MIN_SENSITIVE_LENGTH)


class MaskingFilter(logging.Filter):
    """Redacts sensitive values from every log record before emission."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _sensitive:
            msg = record.getMessage()
            for secret in _sensitive:
                if secret in msg:
                    msg = msg.replace(secret, "***")
            record.msg = msg
            record.args = ()
        return True


class CustomFormatter(logging.Formatter):
    replaces = {
        'DEBUG': '[DBG]',
        'INFO': '[INF]',
        'WARNING': '[WRN]',
        'ERROR': '[ERR]',
        'CRITICAL': '[CRT]'
    }

    def format(self, record):
        timestamp = datetime.now().strftime('[%Y-%m-%d %H:%M:%S]')
        levelname = record.levelname

        level = self.replaces.get(levelname, f'[{levelname}]')
        color_key = level[1:4]

        if IS_TTY and color_key in COLORS:
            colored_level = COLORS[color_key] + level + COLORS['RST']
        else:
            colored_level = level

        try:
            file = os.path.relpath(record.pathname)
        except ValueError:
            file = record.pathname

        return f"{timestamp} {colored_level} | {file}:{record.lineno} | {record.getMessage()}"


logger = logging.getLogger('mailbridge')
logger.setLevel(logging.DEBUG)
logger.addFilter(MaskingFilter())

# Drop handlers left over from a previous import (e.g. module reload)
if logger.handlers:
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
logger.propagate = False

# stdout carries the CLI's SMTP-style reply, so diagnostics go to stderr
console_handler = logging.StreamHandler(sys.stderr)
console_handler.setFormatter(CustomFormatter())
console_handler.setLevel(logging.INFO)
logger.addHandler(console_handler)


def enable_file_logging(log_dir: str = "logs") -> str:
    """Add a DEBUG-level file handler writing to ``<log_dir>/<timestamp>.log``.

    Returns the path of the new log file.
    """
    os.makedirs(log_dir, exist_ok=True)
    # e.g. 20250915-150316061.log, millisecond precision
    filename = datetime.now().strftime("%Y%m%d-%H%M%S%f")[:-3] + ".log"
    path = os.path.join(log_dir, filename)

    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)s] | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
    return path


def set_console_level(level: int) -> None:
    console_handler.setLevel(level)


def get_logger(name=None):
    """Return the configured logger (all callers share one instance for now)."""
    return logger
