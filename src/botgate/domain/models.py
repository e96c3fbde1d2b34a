"""Typed domain events produced from a provider webhook.

Events live for the duration of one inbound request: created by the
adapter, consumed by classification and forwarding, then discarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class Category(str, Enum):
    """Routing label chosen for an inbound message."""

    CLIENT = "client"
    EDUCATION = "education"
    QUIZ = "quiz"

    @classmethod
    def parse(cls, value: str) -> Category:
        try:
            return cls(value.strip().lower())
        except ValueError:
            known = ", ".join(c.value for c in cls)
            raise ValueError(f"unknown category {value!r} (expected one of: {known})") from None


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"
    OTHER = "other"

    @classmethod
    def from_provider(cls, raw: str | None) -> MessageType:
        try:
            return cls(raw or "")
        except ValueError:
            return cls.OTHER


# Types whose media id / mime type are lifted into the Message.
MEDIA_TYPES = frozenset({MessageType.IMAGE, MessageType.VIDEO, MessageType.DOCUMENT})


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


@dataclass(frozen=True)
class Message:
    """Inbound user message, scoped to the tenant that received it.

    ``text_body`` is set only for text messages; ``media_id`` and
    ``mime_type`` only for image/video/document. ``raw_type`` keeps the
    provider's type string when ``type`` is ``OTHER``.
    """

    tenant_id: str
    message_id: str
    sender_id: str
    timestamp: str
    type: MessageType
    text_body: str | None = None
    media_id: str | None = None
    mime_type: str | None = None
    raw_type: str | None = None
    contact_name: str | None = None

    @property
    def is_text(self) -> bool:
        return self.type is MessageType.TEXT


@dataclass(frozen=True)
class StatusUpdate:
    """Delivery-lifecycle update for a message we sent earlier."""

    tenant_id: str
    message_id: str
    status: DeliveryStatus
    timestamp: str
    recipient_id: str


InboundEvent = Union[Message, StatusUpdate]
