"""Message template listing via Meta Graph API.

Proxied for the main application using the caller's own access token,
never this service's credentials.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import requests

from botgate.observability.logging import get_logger
from botgate.observability.redaction import safe_log_context

logger = get_logger(__name__)

HTTP_TIMEOUT = 15.0


class TemplateFetchError(Exception):
    """Template listing failed.

    ``status_code`` and ``body`` mirror the provider response when there
    was one; both are None for network-level failures.
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def fetch_message_templates(
    business_account_id: str,
    access_token: str,
    *,
    api_version: str = "v19.0",
    base_url: str = "https://graph.facebook.com",
    http_get: Callable[..., requests.Response] = requests.get,
    timeout: float = HTTP_TIMEOUT,
) -> Any:
    """Fetch the template list of a WhatsApp Business Account.

    Returns:
        Provider JSON, unmodified.

    Raises:
        TemplateFetchError: On network failure or non-2xx response.
    """
    url = f"{base_url.rstrip('/')}/{api_version}/{business_account_id}/message_templates"
    log_ctx = safe_log_context(business_account_id=business_account_id, api_version=api_version)

    try:
        response = http_get(
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.error(
            "template fetch failed",
            extra={"extra_fields": {**log_ctx, "error_type": type(e).__name__}},
        )
        raise TemplateFetchError(f"request failed: {type(e).__name__}") from e

    body = _json_or_text(response)

    if not 200 <= response.status_code < 300:
        logger.warning(
            "template fetch rejected by provider",
            extra={"extra_fields": {**log_ctx, "status_code": str(response.status_code)}},
        )
        raise TemplateFetchError(
            f"provider returned {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    logger.info("templates fetched", extra={"extra_fields": log_ctx})
    return body


def _json_or_text(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
