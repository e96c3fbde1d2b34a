"""Per-request dispatch of webhook events.

Normalizes one webhook body, then handles its events sequentially in source
order: status updates go to the status relay, messages are classified,
forwarded, and handed to the fallback policy when forwarding fails.

Errors are contained per event. The only exception that leaves
``dispatch`` is UnexpectedObjectError, raised before anything is sent.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

import requests

from botgate.config import Settings
from botgate.domain.classifier import Classifier
from botgate.domain.models import Message, StatusUpdate
from botgate.observability.logging import get_logger
from botgate.observability.redaction import hash_identifier, safe_log_context
from botgate.whatsapp.meta_adapter import normalize_envelope
from botgate.whatsapp.meta_sender import EmptyMessageError, MetaSendError, MetaSender

from .fallback import FallbackResponder, build_fallback
from .forwarder import Forwarder
from .status_relay import StatusRelay

logger = get_logger(__name__)

# Below this many seconds left, outbound calls get this timeout instead.
MIN_CALL_TIMEOUT = 0.5


@dataclass
class DispatchReport:
    """Counters for one webhook request, logged as a summary line."""

    messages: int = 0
    forwarded: int = 0
    fallbacks: int = 0
    fallback_replies: int = 0
    relayed_replies: int = 0
    statuses: int = 0
    statuses_relayed: int = 0
    skipped_changes: int = 0
    deadline_dropped: int = 0
    errors: int = 0


class Deadline:
    """Monotonic per-request time budget. ``seconds <= 0`` disables it."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds if seconds > 0 else None

    @property
    def enabled(self) -> bool:
        return self._expires_at is not None

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cap(self, timeout: float | None) -> float | None:
        """Clamp a call timeout to the time left."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        remaining = max(remaining, MIN_CALL_TIMEOUT)
        return remaining if timeout is None else min(timeout, remaining)


class WebhookRelay:
    """Wires classifier, forwarder, status relay and fallback for dispatch."""

    def __init__(
        self,
        *,
        classifier: Classifier,
        forwarder: Forwarder,
        fallback: FallbackResponder,
        status_relay: StatusRelay | None = None,
        sender: MetaSender | None = None,
        relay_replies: bool = False,
        request_deadline: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.classifier = classifier
        self.forwarder = forwarder
        self.fallback = fallback
        self.status_relay = status_relay or StatusRelay(forwarder)
        self.sender = sender
        self.relay_replies = relay_replies
        self.request_deadline = request_deadline
        self._clock = clock

    @property
    def _send_timeout(self) -> float | None:
        return self.sender.timeout if self.sender is not None else None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_post: Callable[..., requests.Response] = requests.post,
        sender: MetaSender | None = None,
        fallback: FallbackResponder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> WebhookRelay:
        sender = sender or MetaSender.from_settings(settings, http_post=http_post)
        return cls(
            classifier=Classifier.from_names(settings.classifier_priority, settings.media_category),
            forwarder=Forwarder.from_settings(settings, http_post=http_post),
            fallback=fallback or build_fallback(settings, sender=sender),
            sender=sender,
            relay_replies=settings.relay_downstream_replies,
            request_deadline=settings.request_deadline,
            clock=clock,
        )

    def dispatch(self, payload: object) -> DispatchReport:
        """Normalize and handle every event in a webhook body.

        Raises:
            UnexpectedObjectError: If the body is not a business-account event.
        """
        envelope = normalize_envelope(payload)
        report = DispatchReport(skipped_changes=len(envelope.skipped))
        deadline = Deadline(self.request_deadline, clock=self._clock)

        for event in envelope.events:
            if deadline.expired:
                report.deadline_dropped += 1
                logger.error(
                    "event dropped: request deadline exceeded",
                    extra={
                        "extra_fields": safe_log_context(
                            stage="deadline",
                            tenant_id=event.tenant_id,
                            message_id=event.message_id,
                            kind=type(event).__name__,
                        )
                    },
                )
                continue

            try:
                if isinstance(event, StatusUpdate):
                    self._handle_status(event, deadline, report)
                else:
                    self._handle_message(event, deadline, report)
            except Exception:
                report.errors += 1
                logger.exception(
                    "event processing failed",
                    extra={
                        "extra_fields": safe_log_context(
                            tenant_id=event.tenant_id,
                            message_id=event.message_id,
                            kind=type(event).__name__,
                        )
                    },
                )

        logger.info(
            "webhook dispatched",
            extra={"extra_fields": {k: str(v) for k, v in asdict(report).items()}},
        )
        return report

    def _handle_status(self, update: StatusUpdate, deadline: Deadline, report: DispatchReport) -> None:
        report.statuses += 1
        attempt = self.status_relay.relay_status(
            update, timeout=deadline.cap(self.forwarder.status_timeout)
        )
        if attempt.ok:
            report.statuses_relayed += 1

    def _handle_message(self, message: Message, deadline: Deadline, report: DispatchReport) -> None:
        report.messages += 1
        category = self.classifier.classify(message)

        logger.info(
            "message received",
            extra={
                "extra_fields": safe_log_context(
                    tenant_id=message.tenant_id,
                    message_id=message.message_id,
                    message_type=message.type.value,
                    category=category.value,
                    from_hash=hash_identifier(message.sender_id),
                )
            },
        )

        attempt = self.forwarder.forward(
            category,
            message.tenant_id,
            message,
            timeout=deadline.cap(self.forwarder.message_timeout),
        )

        if attempt.ok:
            report.forwarded += 1
            reply = attempt.reply_text
            if self.relay_replies and reply:
                if self._relay_reply(message, reply, deadline):
                    report.relayed_replies += 1
            return

        report.fallbacks += 1
        outcome = self.fallback.respond(
            message, category, attempt, timeout=deadline.cap(self._send_timeout)
        )
        if outcome.replied:
            report.fallback_replies += 1

    def _relay_reply(self, message: Message, reply: str, deadline: Deadline) -> bool:
        log_ctx = safe_log_context(
            stage="reply_relay",
            tenant_id=message.tenant_id,
            message_id=message.message_id,
        )
        if self.sender is None:
            logger.warning("downstream reply not relayed: no sender", extra={"extra_fields": log_ctx})
            return False
        try:
            self.sender.send_text(
                to_phone=message.sender_id,
                text=reply,
                sender_phone_number_id=message.tenant_id,
                timeout=deadline.cap(self._send_timeout),
            )
        except (MetaSendError, EmptyMessageError) as e:
            logger.error(
                "downstream reply relay failed",
                extra={"extra_fields": {**log_ctx, "error_type": type(e).__name__}},
            )
            return False
        return True
