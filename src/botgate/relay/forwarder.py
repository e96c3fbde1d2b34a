"""Forwarding of normalized events to downstream chatbot endpoints.

One attempt per event, no retries: the downstream owns its durability.
Every failure (unset endpoint, denylisted host, network error, non-2xx,
``success: false``) is returned as a value so the caller can route it to
fallback; nothing is raised out of ``forward``.

Security: NEVER log sender ids or message text.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import requests

from botgate.config import Settings
from botgate.domain.models import Category, Message
from botgate.observability.logging import get_logger
from botgate.observability.redaction import safe_log_context

from .endpoints import DeniedHostError, EndpointConfigError, chatbot_path, resolve_destination
from .payloads import ForwardedMessage

logger = get_logger(__name__)


class ForwardFailure(str, Enum):
    """Why a forward attempt failed. The first two never touch the network."""

    NOT_CONFIGURED = "not_configured"
    DENYLISTED = "denylisted"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    REJECTED = "rejected"

    @property
    def is_config_error(self) -> bool:
        return self in (ForwardFailure.NOT_CONFIGURED, ForwardFailure.DENYLISTED)


@dataclass(frozen=True)
class ForwardAttempt:
    """Record of one outbound call. Used for logging and fallback decisions."""

    target_url: str | None
    payload: dict[str, Any] = field(repr=False)
    status_code: int | None = None
    body: Any = field(default=None, repr=False)
    failure: ForwardFailure | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def reply_text(self) -> str | None:
        """Text the downstream asked us to relay to the end user, if any.

        Only for successful attempts whose JSON body has ``success: true``
        and a non-empty ``response`` (or ``reply``) string.
        """
        if not self.ok or not isinstance(self.body, dict) or self.body.get("success") is not True:
            return None
        for key in ("response", "reply"):
            value = self.body.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return None


class Forwarder:
    """Authenticated JSON POSTs to ``<base>/<path>`` with bounded timeouts."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str = "",
        host_denylist: Iterable[str] = (),
        message_timeout: float = 30.0,
        status_timeout: float = 10.0,
        http_post: Callable[..., requests.Response] = requests.post,
    ) -> None:
        self._base_url = base_url
        self._token = token
        self._denylist = tuple(host_denylist)
        self.message_timeout = message_timeout
        self.status_timeout = status_timeout
        self._http_post = http_post

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_post: Callable[..., requests.Response] = requests.post,
    ) -> Forwarder:
        return cls(
            base_url=settings.downstream_base_url,
            token=settings.downstream_token,
            host_denylist=settings.host_denylist,
            message_timeout=settings.message_timeout,
            status_timeout=settings.status_timeout,
            http_post=http_post,
        )

    def forward(
        self,
        category: Category,
        tenant_id: str,
        message: Message,
        timeout: float | None = None,
    ) -> ForwardAttempt:
        """Forward a message to its category endpoint.

        Args:
            category: Routing category from the classifier.
            tenant_id: Tenant phone_number_id.
            message: Normalized message.
            timeout: Overrides the message timeout (deadline capping).
        """
        payload = ForwardedMessage.build(category, tenant_id, message).to_json()
        log_ctx = safe_log_context(
            stage="forward",
            tenant_id=tenant_id,
            message_id=message.message_id,
            category=category.value,
            message_type=message.type.value,
        )
        return self.post(
            chatbot_path(category),
            payload,
            timeout=self.message_timeout if timeout is None else timeout,
            log_ctx=log_ctx,
        )

    def post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        timeout: float,
        log_ctx: dict[str, str] | None = None,
    ) -> ForwardAttempt:
        """POST ``payload`` to ``path`` under the configured base URL."""
        log_ctx = dict(log_ctx or {})

        try:
            url = resolve_destination(self._base_url, path, self._denylist)
        except DeniedHostError as e:
            logger.warning(
                "forward skipped: destination host is denylisted",
                extra={"extra_fields": {**log_ctx, "error_class": "denylisted", "pattern": e.pattern}},
            )
            return ForwardAttempt(None, payload, failure=ForwardFailure.DENYLISTED, detail=str(e))
        except EndpointConfigError as e:
            logger.error(
                "forward skipped: downstream endpoint not configured",
                extra={"extra_fields": {**log_ctx, "error_class": "not_configured", "reason": str(e)}},
            )
            return ForwardAttempt(None, payload, failure=ForwardFailure.NOT_CONFIGURED, detail=str(e))

        log_ctx["path"] = path
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = self._http_post(url, json=payload, headers=headers, timeout=timeout)
        except requests.RequestException as e:
            logger.error(
                "forward failed: network error",
                extra={
                    "extra_fields": {
                        **log_ctx,
                        "error_class": "network",
                        "error_type": type(e).__name__,
                    }
                },
            )
            return ForwardAttempt(
                url, payload, failure=ForwardFailure.NETWORK, detail=type(e).__name__
            )

        body = _response_body(response)
        status_ctx = {**log_ctx, "status_code": str(response.status_code)}

        if not 200 <= response.status_code < 300:
            logger.error(
                "forward failed: downstream returned error status",
                extra={"extra_fields": {**status_ctx, "error_class": "http_status"}},
            )
            return ForwardAttempt(
                url,
                payload,
                status_code=response.status_code,
                body=body,
                failure=ForwardFailure.HTTP_STATUS,
                detail=f"HTTP {response.status_code}",
            )

        if isinstance(body, dict) and body.get("success") is False:
            logger.error(
                "forward failed: downstream reported success=false",
                extra={"extra_fields": {**status_ctx, "error_class": "rejected"}},
            )
            return ForwardAttempt(
                url,
                payload,
                status_code=response.status_code,
                body=body,
                failure=ForwardFailure.REJECTED,
                detail="success=false",
            )

        logger.info("forwarded successfully", extra={"extra_fields": status_ctx})
        return ForwardAttempt(url, payload, status_code=response.status_code, body=body)


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
