"""Process-wide settings.

Built once at startup from the environment and passed explicitly to every
component. Nothing below this module reads ``os.environ``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from botgate.domain.models import Category

SERVICE_NAME = "botgate"
SERVICE_VERSION = "1.0.0"

FallbackMode = Literal["auto-reply", "log-only"]
FALLBACK_MODES: tuple[str, ...] = ("auto-reply", "log-only")

DEFAULT_HOST_DENYLIST: tuple[str, ...] = ("localhost", "127.0.0.1", "0.0.0.0", "::1")
DEFAULT_CLASSIFIER_PRIORITY: tuple[str, ...] = ("quiz", "education", "client")
DEFAULT_GRAPH_API_VERSION = "v19.0"
DEFAULT_GRAPH_BASE_URL = "https://graph.facebook.com"


@dataclass(frozen=True)
class Settings:
    """Read-only configuration for one process.

    Attributes:
        verify_token: Token Meta echoes back during webhook subscription.
        downstream_base_url: Base URL of the chatbot endpoints. Empty means
            forwarding is not configured and every message goes to fallback.
        downstream_token: Bearer token sent to the chatbot endpoints.
        meta_access_token: Send credential for the provider's message API.
        meta_phone_number_id: Sender phone-number-id for fallback replies.
            Empty means reply from the tenant's own number.
        fallback_mode: "auto-reply" or "log-only".
        request_deadline: Upper bound in seconds for dispatching all events of
            one webhook request. 0 disables the bound.
    """

    verify_token: str = ""
    downstream_base_url: str = ""
    downstream_token: str = ""
    meta_access_token: str = ""
    meta_phone_number_id: str = ""
    graph_api_version: str = DEFAULT_GRAPH_API_VERSION
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    port: int = 3000
    fallback_mode: FallbackMode = "auto-reply"
    message_timeout: float = 30.0
    status_timeout: float = 10.0
    send_timeout: float = 10.0
    request_deadline: float = 55.0
    host_denylist: tuple[str, ...] = DEFAULT_HOST_DENYLIST
    classifier_priority: tuple[str, ...] = DEFAULT_CLASSIFIER_PRIORITY
    media_category: str = "education"
    relay_downstream_replies: bool = False
    cors_allow_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.fallback_mode not in FALLBACK_MODES:
            raise ValueError(
                f"fallback_mode must be one of {FALLBACK_MODES}, got {self.fallback_mode!r}"
            )
        for name in ("message_timeout", "status_timeout", "send_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.request_deadline < 0:
            raise ValueError("request_deadline must be >= 0")
        for name in (*self.classifier_priority, self.media_category):
            Category.parse(name)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Load settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ValueError: On malformed numbers, unknown fallback modes or
                unknown category names.
        """
        env = os.environ if environ is None else environ

        return cls(
            verify_token=env.get("VERIFY_TOKEN", ""),
            downstream_base_url=env.get("BOLT_WEBHOOK_ENDPOINT", "").strip(),
            downstream_token=env.get("BOLT_WEBHOOK_TOKEN", ""),
            meta_access_token=(
                env.get("META_ACCESS_TOKEN") or env.get("WHATSAPP_ACCESS_TOKEN", "")
            ),
            meta_phone_number_id=(
                env.get("META_PHONE_NUMBER_ID") or env.get("WHATSAPP_PHONE_NUMBER_ID", "")
            ),
            graph_api_version=env.get("META_GRAPH_API_VERSION", DEFAULT_GRAPH_API_VERSION),
            graph_base_url=env.get("META_GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL).rstrip("/"),
            port=_int(env, "PORT", 3000),
            fallback_mode=env.get("FALLBACK_MODE", "auto-reply").strip().lower(),  # type: ignore[arg-type]
            message_timeout=_float(env, "FORWARD_TIMEOUT_SECONDS", 30.0),
            status_timeout=_float(env, "STATUS_TIMEOUT_SECONDS", 10.0),
            send_timeout=_float(env, "META_SEND_TIMEOUT_SECONDS", 10.0),
            request_deadline=_float(env, "WEBHOOK_DEADLINE_SECONDS", 55.0),
            host_denylist=_csv(env, "FORWARD_HOST_DENYLIST", DEFAULT_HOST_DENYLIST),
            classifier_priority=_csv(env, "CLASSIFIER_PRIORITY", DEFAULT_CLASSIFIER_PRIORITY),
            media_category=env.get("MEDIA_CATEGORY", "education").strip().lower(),
            relay_downstream_replies=_bool(env, "RELAY_DOWNSTREAM_REPLIES", False),
            cors_allow_origins=_csv(env, "CORS_ALLOW_ORIGINS", ("*",)),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def presence_flags(self) -> dict[str, bool]:
        """Which credentials/endpoints are set. Safe to expose on /health."""
        return {
            "verifyToken": bool(self.verify_token),
            "downstreamEndpoint": bool(self.downstream_base_url),
            "downstreamToken": bool(self.downstream_token),
            "metaAccessToken": bool(self.meta_access_token),
            "metaPhoneNumberId": bool(self.meta_phone_number_id),
        }


def load_settings() -> Settings:
    """Settings for the running process."""
    return Settings.from_env()


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _csv(env: Mapping[str, str], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())
