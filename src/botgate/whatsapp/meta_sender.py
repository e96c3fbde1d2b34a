"""Outbound WhatsApp messaging via Meta Cloud API.

Security: NEVER log to_phone or text. Only log hashes and lengths.
Single attempt per message; callers decide what a failure means.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import requests

from botgate.config import Settings
from botgate.observability.logging import get_logger
from botgate.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

# Provider limit for a text message body, in characters.
MAX_TEXT_LENGTH = 4096
TRUNCATION_MARKER = "… [truncated]"


class MetaSendError(Exception):
    """The provider did not accept the message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MetaConfigError(MetaSendError):
    """Send credentials (access token / sender id) are missing."""


class EmptyMessageError(ValueError):
    """Reply body is empty or whitespace only."""


def prepare_text(text: str, limit: int = MAX_TEXT_LENGTH) -> str:
    """Validate and clamp a reply body to the provider limit.

    Bodies longer than ``limit`` are cut so that body plus marker is exactly
    ``limit`` characters.

    Raises:
        EmptyMessageError: If the body is empty after stripping.
    """
    if not text or not text.strip():
        raise EmptyMessageError("reply body is empty")
    if len(text) <= limit:
        return text
    return text[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


class MetaSender:
    """Sends text messages through ``POST /<version>/<phone_number_id>/messages``."""

    def __init__(
        self,
        *,
        access_token: str,
        phone_number_id: str = "",
        api_version: str = "v19.0",
        base_url: str = "https://graph.facebook.com",
        timeout: float = 10.0,
        http_post: Callable[..., requests.Response] = requests.post,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._api_version = api_version
        self._base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_post = http_post

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_post: Callable[..., requests.Response] = requests.post,
    ) -> MetaSender:
        return cls(
            access_token=settings.meta_access_token,
            phone_number_id=settings.meta_phone_number_id,
            api_version=settings.graph_api_version,
            base_url=settings.graph_base_url,
            timeout=settings.send_timeout,
            http_post=http_post,
        )

    def messages_url(self, phone_number_id: str) -> str:
        return f"{self._base_url}/{self._api_version}/{phone_number_id}/messages"

    def send_text(
        self,
        *,
        to_phone: str,
        text: str,
        sender_phone_number_id: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a text message.

        Args:
            to_phone: Recipient phone number. NEVER logged.
            text: Message text. NEVER logged. Truncated to MAX_TEXT_LENGTH.
            sender_phone_number_id: Used when no sender id is configured.
            timeout: Overrides the configured timeout (deadline capping).

        Returns:
            Provider response JSON.

        Raises:
            EmptyMessageError: If text is empty.
            MetaConfigError: If the access token or sender id is missing.
            MetaSendError: On network errors or non-2xx responses.
        """
        body = prepare_text(text)

        phone_number_id = self._phone_number_id or (sender_phone_number_id or "")
        if not self._access_token or not phone_number_id:
            raise MetaConfigError(
                "Missing Meta config: META_ACCESS_TOKEN and a sender phone_number_id required"
            )

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to_phone,
            "type": "text",
            "text": {"body": body},
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._access_token}",
        }

        log_ctx = safe_log_context(
            to_hash=hash_identifier(to_phone),
            text_len=len(body),
            truncated=len(body) != len(text),
            provider="meta",
        )
        logger.info("sending outbound message via meta", extra={"extra_fields": log_ctx})

        try:
            response = self._http_post(
                self.messages_url(phone_number_id),
                json=payload,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "outbound send via meta failed",
                extra={"extra_fields": {**log_ctx, "error_type": type(e).__name__}},
            )
            raise MetaSendError(f"request failed: {type(e).__name__}") from e

        if not 200 <= response.status_code < 300:
            logger.error(
                "outbound send via meta rejected",
                extra={"extra_fields": {**log_ctx, "status_code": str(response.status_code)}},
            )
            raise MetaSendError(
                f"provider returned {response.status_code}", status_code=response.status_code
            )

        logger.info("outbound message sent via meta", extra={"extra_fields": log_ctx})
        try:
            result = response.json()
        except ValueError:
            return {}
        return result if isinstance(result, dict) else {}
