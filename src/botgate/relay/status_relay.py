"""Delivery-status relay.

Every status update goes to one fixed endpoint, independent of
classification. A failed relay is logged and dropped;
status updates have no fallback.
"""

from __future__ import annotations

from botgate.domain.models import StatusUpdate
from botgate.observability.logging import get_logger
from botgate.observability.redaction import safe_log_context

from .endpoints import STATUS_PATH
from .forwarder import ForwardAttempt, Forwarder
from .payloads import ForwardedStatus

logger = get_logger(__name__)


class StatusRelay:
    def __init__(self, forwarder: Forwarder) -> None:
        self._forwarder = forwarder

    def relay_status(self, update: StatusUpdate, timeout: float | None = None) -> ForwardAttempt:
        """Forward a status update. Never raises for forwarding failures."""
        log_ctx = safe_log_context(
            stage="status_relay",
            tenant_id=update.tenant_id,
            message_id=update.message_id,
            status=update.status.value,
        )
        attempt = self._forwarder.post(
            STATUS_PATH,
            ForwardedStatus.build(update).to_json(),
            timeout=self._forwarder.status_timeout if timeout is None else timeout,
            log_ctx=log_ctx,
        )
        if not attempt.ok:
            logger.warning(
                "status update dropped",
                extra={
                    "extra_fields": {
                        **log_ctx,
                        "error_class": attempt.failure.value if attempt.failure else "unknown",
                    }
                },
            )
        return attempt
