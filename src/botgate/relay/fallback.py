"""Fallback policies for messages that could not be forwarded.

Selected once per process via FALLBACK_MODE:
- "auto-reply": send a canned, category-specific acknowledgement to the
  sender through the provider's send-message API
- "log-only": log the failure and send nothing; end-user communication
  belongs to the downstream

A failing fallback is terminal for the event: it is logged, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from botgate.config import Settings
from botgate.domain.models import Category, Message
from botgate.observability.logging import get_logger
from botgate.observability.redaction import hash_identifier, safe_log_context
from botgate.whatsapp.meta_sender import (
    EmptyMessageError,
    MetaConfigError,
    MetaSendError,
    MetaSender,
)
from botgate.whatsapp.templates import render_fallback

from .forwarder import ForwardAttempt

logger = get_logger(__name__)


@dataclass(frozen=True)
class FallbackOutcome:
    mode: str
    replied: bool
    detail: str | None = None


class FallbackResponder(Protocol):
    """Protocol for fallback policies."""

    mode: str

    def respond(
        self,
        message: Message,
        category: Category,
        attempt: ForwardAttempt,
        timeout: float | None = None,
    ) -> FallbackOutcome:
        """Handle a failed forward for ``message``. Must not raise."""
        ...


def _failure_context(message: Message, category: Category, attempt: ForwardAttempt) -> dict[str, str]:
    return safe_log_context(
        stage="fallback",
        tenant_id=message.tenant_id,
        message_id=message.message_id,
        category=category.value,
        error_class=attempt.failure.value if attempt.failure else "unknown",
        config_error=bool(attempt.failure and attempt.failure.is_config_error),
    )


class LogOnlyFallback:
    mode = "log-only"

    def respond(
        self,
        message: Message,
        category: Category,
        attempt: ForwardAttempt,
        timeout: float | None = None,
    ) -> FallbackOutcome:
        logger.error(
            "message not forwarded; no reply sent (log-only mode)",
            extra={"extra_fields": _failure_context(message, category, attempt)},
        )
        return FallbackOutcome(self.mode, replied=False, detail="logged")


class AutoReplyFallback:
    mode = "auto-reply"

    def __init__(self, sender: MetaSender) -> None:
        self._sender = sender

    def respond(
        self,
        message: Message,
        category: Category,
        attempt: ForwardAttempt,
        timeout: float | None = None,
    ) -> FallbackOutcome:
        log_ctx = {
            **_failure_context(message, category, attempt),
            "to_hash": hash_identifier(message.sender_id),
        }
        logger.warning(
            "message not forwarded; sending auto-reply", extra={"extra_fields": log_ctx}
        )

        try:
            self._sender.send_text(
                to_phone=message.sender_id,
                text=render_fallback(category),
                sender_phone_number_id=message.tenant_id,
                timeout=timeout,
            )
        except MetaConfigError as e:
            logger.error(
                "auto-reply not sent: send credentials missing",
                extra={"extra_fields": {**log_ctx, "reason": str(e)}},
            )
            return FallbackOutcome(self.mode, replied=False, detail="not_configured")
        except (MetaSendError, EmptyMessageError) as e:
            logger.error(
                "auto-reply failed",
                extra={"extra_fields": {**log_ctx, "error_type": type(e).__name__}},
            )
            return FallbackOutcome(self.mode, replied=False, detail=type(e).__name__)

        return FallbackOutcome(self.mode, replied=True)


def build_fallback(settings: Settings, sender: MetaSender | None = None) -> FallbackResponder:
    """Fallback policy for the configured mode."""
    if settings.fallback_mode == "log-only":
        return LogOnlyFallback()
    return AutoReplyFallback(sender or MetaSender.from_settings(settings))
