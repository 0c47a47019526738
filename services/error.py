from collections.abc import Iterable
from contextlib import contextmanager
import sys
import traceback
import services.logger as log

# Initialize logger
l = log.get_logger()


class MailBridgeError(Exception):
    """Base class for every error raised while relaying a mail."""


class SizeExceededError(MailBridgeError):
    """The full-message fallback document is larger than the attachment limit."""


class DeliveryError(MailBridgeError):
    """A request to the chat platform failed or was rejected."""


class AttachmentDeliveryError(DeliveryError):
    """An attachment reply could not be delivered."""


class TruncationInvariantError(MailBridgeError):
    """A truncated message still exceeds its length budget (programming error)."""


def _handle_uncaught_exceptions(exc_type, exc_value, exc_traceback):
    """Global exception handler for uncaught exceptions."""
    if issubclass(exc_type, KeyboardInterrupt):
        # Call default handler for keyboard interrupt (e.g. Ctrl+C)
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    # Log the full traceback for debugging
    l.critical(
        "Unhandled exception caught:\n"
        + ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )

# Install global exception hook
sys.excepthook = _handle_uncaught_exceptions


def escape_multiline(text: str) -> str:
    """Escape CR/LF so *text* stays on one line.

    SMTP replies cannot carry multi-line error text: everything after the
    first newline is lost on the sender's side.
    """
    return text.replace("\r", "\\r").replace("\n", "\\n")


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret in *text* with ``***``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def rejection_reply(exc: BaseException, secrets: Iterable[str] = ()) -> str:
    """Render *exc* as a single-line SMTP permanent failure reply."""
    return f"554 Error: {escape_multiline(redact(str(exc), secrets))}"


def raise_and_log(message: str, exception_type: type = Exception):
    """
    Log an error and then raise the specified exception.

    :param message: Error message to log and include in the exception.
    :param exception_type: Type of exception to raise (default: Exception).
    """
    l.error(f"Raising exception: {message}")
    raise exception_type(message)

@contextmanager
def catch_and_log(context_info: str = ""):
    """
    Log any exception raised inside the block, then re-raise it.

    :param context_info: Optional context info to include in the log.
    """
    try:
        yield
    except Exception as e:
        msg = f"Exception caught in context '{context_info}': {e}"
        l.error(msg)
        raise
