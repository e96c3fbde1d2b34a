"""Shared test helper functions for botgate tests.

This module contains helpers that can be imported by both conftest.py and
individual test files. These are NOT fixtures - they are regular functions
and small test doubles.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import requests

TENANT_ID = "1234567890"
SENDER = "+221123456789"
DOWNSTREAM_BASE = "https://bots.example.com/functions/v1"
GRAPH_BASE = "https://graph.facebook.com"


def make_response(
    status_code: int = 200,
    json_body: Any = None,
    text: str | None = None,
) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    if json_body is not None:
        response._content = json.dumps(json_body).encode()
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = (text or "").encode()
    return response


class FakeHttp:
    """Records outbound calls and answers them from a handler.

    Stands in for ``requests.post`` / ``requests.get``. The handler gets the
    URL and keyword arguments and returns a Response or raises.
    """

    def __init__(self, handler: Callable[..., requests.Response] | None = None):
        self.calls: list[dict[str, Any]] = []
        self._handler = handler or (lambda url, **kwargs: make_response(200, {"success": True}))

    def __call__(self, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"url": url, **kwargs})
        return self._handler(url, **kwargs)

    @property
    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]

    def calls_to(self, fragment: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if fragment in call["url"]]


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for _level, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)

    def levels(self) -> list[str]:
        return [level for level, _, _ in self.calls]

    def extra_fields(self) -> list[dict[str, str]]:
        return [kwargs.get("extra", {}).get("extra_fields", {}) for _, _, kwargs in self.calls]


def text_message(
    body: str,
    message_id: str = "wamid.TEXT1",
    sender: str = SENDER,
) -> dict[str, Any]:
    return {
        "from": sender,
        "id": message_id,
        "timestamp": "1704067200",
        "type": "text",
        "text": {"body": body},
    }


def status_item(
    status: str = "delivered",
    message_id: str = "wamid.OUT1",
    recipient: str = SENDER,
) -> dict[str, Any]:
    return {
        "id": message_id,
        "status": status,
        "timestamp": "1704067300",
        "recipient_id": recipient,
    }


def change(
    messages: list[dict[str, Any]] | None = None,
    statuses: list[dict[str, Any]] | None = None,
    tenant_id: str | None = TENANT_ID,
    contacts: list[dict[str, Any]] | None = None,
    field: str = "messages",
) -> dict[str, Any]:
    value: dict[str, Any] = {"messaging_product": "whatsapp"}
    if tenant_id is not None:
        value["metadata"] = {
            "display_phone_number": "15550001111",
            "phone_number_id": tenant_id,
        }
    if contacts is not None:
        value["contacts"] = contacts
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    return {"field": field, "value": value}


def envelope(*entries: list[dict[str, Any]], object_type: str = "whatsapp_business_account"):
    """Webhook body with one entry per list of changes."""
    return {
        "object": object_type,
        "entry": [{"id": f"WABA{i}", "changes": changes} for i, changes in enumerate(entries)],
    }
