"""JSON bodies sent to the downstream chatbot and status endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from botgate.domain.models import Category, Message, StatusUpdate


class ForwardedMessage(BaseModel):
    """Body POSTed to ``/api/chatbot/<category>``."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    phone_number_id: str = Field(..., alias="phoneNumberId")
    sender: str = Field(..., alias="from")
    message_id: str = Field(..., alias="messageId")
    timestamp: str
    category: Category
    type: str
    text: str | None = None
    media_type: str | None = Field(None, alias="mediaType")
    media_id: str | None = Field(None, alias="mediaId")
    mime_type: str | None = Field(None, alias="mimeType")
    provider_type: str | None = Field(None, alias="providerType")
    contact_name: str | None = Field(None, alias="contactName")

    @classmethod
    def build(cls, category: Category, tenant_id: str, message: Message) -> ForwardedMessage:
        is_media = not message.is_text
        return cls(
            phone_number_id=tenant_id,
            sender=message.sender_id,
            message_id=message.message_id,
            timestamp=message.timestamp,
            category=category,
            type=message.type.value,
            text=message.text_body if message.is_text else None,
            media_type=message.type.value if is_media else None,
            media_id=message.media_id,
            mime_type=message.mime_type,
            provider_type=message.raw_type,
            contact_name=message.contact_name,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ForwardedStatus(BaseModel):
    """Body POSTed to ``/api/whatsapp/status``."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    phone_number_id: str = Field(..., alias="phoneNumberId")
    message_id: str = Field(..., alias="messageId")
    recipient_id: str = Field(..., alias="recipientId")
    status: str
    timestamp: str

    @classmethod
    def build(cls, update: StatusUpdate) -> ForwardedStatus:
        return cls(
            phone_number_id=update.tenant_id,
            message_id=update.message_id,
            recipient_id=update.recipient_id,
            status=update.status.value,
            timestamp=update.timestamp,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
