"""Redaction helpers for safe logging.

Sender ids, recipient ids and message bodies are PII. They go through
these helpers (or are hashed) before reaching a log call.
"""

import hashlib
import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_BEARER_PATTERN = re.compile(r"(?i)bearer\s+[a-z0-9._\-]+")

_REDACTED = "[REDACTED]"

# Keys whose values are identifiers we must keep readable (tenant ids and
# provider message ids look like phone numbers to the pattern above).
_PASSTHROUGH_KEYS = frozenset({"tenant_id", "message_id", "status_code", "correlationId"})


def hash_identifier(value: str) -> str:
    """Non-reversible short hash for logging. First 12 chars of sha256."""
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def redact_string(value: str) -> str:
    result = _BEARER_PATTERN.sub("Bearer " + _REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # structure only, never values
        return f"dict(keys={sorted(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging.

    Identifier keys listed in ``_PASSTHROUGH_KEYS`` are stringified as-is;
    everything else is redacted.
    """
    ctx: dict[str, str] = {}
    for key, value in kwargs.items():
        if key in _PASSTHROUGH_KEYS and isinstance(value, (str, int)):
            ctx[key] = str(value)
        else:
            ctx[key] = redact_value(value)
    return ctx
