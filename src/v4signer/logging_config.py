"""Structured logging configuration for v4signer.

Signed URLs and policy signatures are bearer credentials. Every handler
installed here carries a RedactionFilter, so a signature or key that ends up
in a log message is masked before it is written.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone

# Extra record attributes copied into JSON output when present.
EXTRA_FIELDS = ("bucket", "object", "action", "algorithm", "url_style", "error")

REDACTED = "[REDACTED]"

_SIGNATURE_PATTERN = re.compile(r"(x-goog-signature[=:]\s*)[0-9a-f]+", re.IGNORECASE)
_PEM_PATTERN = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL
)


def redact(text: str) -> str:
    """Mask signature values and PEM private keys in ``text``."""
    text = _SIGNATURE_PATTERN.sub(lambda m: m.group(1) + REDACTED, text)
    return _PEM_PATTERN.sub(REDACTED, text)


class RedactionFilter(logging.Filter):
    """Rewrites the record message with signatures and keys masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, plus the signing context
    named in EXTRA_FIELDS when the record carries it.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = redact(self.formatException(record.exc_info))
        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure root logging with the specified level and format.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: 'text' for human-readable lines or 'json' for structured output.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.addFilter(RedactionFilter())

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root.addHandler(handler)
