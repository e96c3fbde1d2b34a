"""Meta Cloud API adapter - validate and normalize webhook payloads.

Walks entry -> changes -> value and flattens the payload into typed
domain events. Errors are isolated per Change: a Change without a tenant
is skipped and reported, its siblings are still normalized.

Payload structure:
{
  "object": "whatsapp_business_account",
  "entry": [{
    "changes": [{
      "field": "messages",
      "value": {
        "metadata": {"phone_number_id": "..."},
        "contacts": [{"wa_id": "PHONE", "profile": {"name": "..."}}],
        "messages": [{"from": "PHONE", "id": "MSG_ID", "timestamp": "...",
                      "type": "text", "text": {"body": "..."}}],
        "statuses": [{"id": "MSG_ID", "status": "delivered",
                      "timestamp": "...", "recipient_id": "PHONE"}]
      }
    }]
  }]
}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from botgate.domain.models import (
    MEDIA_TYPES,
    DeliveryStatus,
    InboundEvent,
    Message,
    MessageType,
    StatusUpdate,
)
from botgate.observability.logging import get_logger
from botgate.observability.redaction import safe_log_context

logger = get_logger(__name__)

BUSINESS_ACCOUNT_OBJECT = "whatsapp_business_account"

# Change fields that carry messages and statuses. Anything else is ignored.
RELEVANT_FIELDS = frozenset({"messages"})


class InvalidPayloadError(Exception):
    """Raised when Meta payload has invalid shape."""


class UnexpectedObjectError(InvalidPayloadError):
    """Top-level ``object`` is missing or not a business-account event."""

    def __init__(self, object_type: Any) -> None:
        self.object_type = object_type
        super().__init__(f"unexpected webhook object: {object_type!r}")


class MissingTenantError(InvalidPayloadError):
    """Change value carries events but no ``metadata.phone_number_id``."""


@dataclass(frozen=True)
class SkippedChange:
    """A Change (or a single element of it) that could not be normalized."""

    entry_index: int
    change_index: int
    reason: str


@dataclass
class NormalizedEnvelope:
    """Result of normalizing one webhook body.

    ``events`` keeps source order: entries, then changes, then within a
    change all statuses followed by all messages.
    """

    events: list[InboundEvent] = field(default_factory=list)
    skipped: list[SkippedChange] = field(default_factory=list)

    @property
    def messages(self) -> list[Message]:
        return [e for e in self.events if isinstance(e, Message)]

    @property
    def statuses(self) -> list[StatusUpdate]:
        return [e for e in self.events if isinstance(e, StatusUpdate)]


def resolve_tenant(value: dict[str, Any]) -> str:
    """Extract the tenant key (``metadata.phone_number_id``) from a change value.

    Args:
        value: The ``value`` object of a Change.

    Returns:
        Non-empty phone_number_id.

    Raises:
        MissingTenantError: If metadata or phone_number_id is absent or blank.
    """
    metadata = value.get("metadata")
    if not isinstance(metadata, dict):
        raise MissingTenantError("missing metadata")

    phone_number_id = metadata.get("phone_number_id")
    if phone_number_id is None:
        raise MissingTenantError("missing phone_number_id")
    if not isinstance(phone_number_id, (str, int)) or not str(phone_number_id).strip():
        raise MissingTenantError("blank phone_number_id")

    return str(phone_number_id).strip()


def normalize_envelope(payload: Any) -> NormalizedEnvelope:
    """Normalize a Meta webhook body into domain events.

    Args:
        payload: Deserialized JSON body.

    Returns:
        NormalizedEnvelope with events in source order and skipped changes.

    Raises:
        UnexpectedObjectError: If ``object`` is not a business-account event.
            Raised before any event is produced.
    """
    object_type = payload.get("object") if isinstance(payload, dict) else None
    if object_type != BUSINESS_ACCOUNT_OBJECT:
        raise UnexpectedObjectError(object_type)

    result = NormalizedEnvelope()

    for entry_index, entry in enumerate(_as_list(payload.get("entry"))):
        if not isinstance(entry, dict):
            result.skipped.append(SkippedChange(entry_index, -1, "entry is not an object"))
            continue

        for change_index, change in enumerate(_as_list(entry.get("changes"))):
            _normalize_change(result, entry_index, change_index, change)

    return result


def _normalize_change(
    result: NormalizedEnvelope,
    entry_index: int,
    change_index: int,
    change: Any,
) -> None:
    if not isinstance(change, dict):
        result.skipped.append(SkippedChange(entry_index, change_index, "change is not an object"))
        return

    if change.get("field") not in RELEVANT_FIELDS:
        return

    value = change.get("value")
    if not isinstance(value, dict):
        result.skipped.append(SkippedChange(entry_index, change_index, "missing value"))
        return

    statuses = _as_list(value.get("statuses"))
    messages = _as_list(value.get("messages"))
    if not statuses and not messages:
        return

    try:
        tenant_id = resolve_tenant(value)
    except MissingTenantError as e:
        logger.error(
            "change skipped: missing tenant",
            extra={
                "extra_fields": safe_log_context(
                    stage="normalize",
                    entry_index=entry_index,
                    change_index=change_index,
                    reason=str(e),
                    message_count=len(messages),
                    status_count=len(statuses),
                )
            },
        )
        result.skipped.append(SkippedChange(entry_index, change_index, str(e)))
        return

    contact_names = _contact_names(value.get("contacts"))

    for status in statuses:
        try:
            result.events.append(_parse_status(tenant_id, status))
        except InvalidPayloadError as e:
            _skip_element(result, entry_index, change_index, tenant_id, "status", e)

    for message in messages:
        try:
            result.events.append(_parse_message(tenant_id, message, contact_names))
        except InvalidPayloadError as e:
            _skip_element(result, entry_index, change_index, tenant_id, "message", e)


def _parse_message(
    tenant_id: str,
    message: Any,
    contact_names: dict[str, str],
) -> Message:
    if not isinstance(message, dict):
        raise InvalidPayloadError("message is not an object")

    message_id = _required_str(message, "id")
    sender_id = _required_str(message, "from")
    timestamp = str(message.get("timestamp") or "")

    raw_type = message.get("type")
    message_type = MessageType.from_provider(raw_type if isinstance(raw_type, str) else None)

    text_body = None
    media_id = None
    mime_type = None

    if message_type is MessageType.TEXT:
        text_obj = message.get("text")
        body = text_obj.get("body") if isinstance(text_obj, dict) else None
        text_body = body if isinstance(body, str) else ""
    elif message_type in MEDIA_TYPES:
        media = message.get(message_type.value)
        if isinstance(media, dict):
            media_id = _optional_str(media.get("id"))
            mime_type = _optional_str(media.get("mime_type"))

    return Message(
        tenant_id=tenant_id,
        message_id=message_id,
        sender_id=sender_id,
        timestamp=timestamp,
        type=message_type,
        text_body=text_body,
        media_id=media_id,
        mime_type=mime_type,
        raw_type=str(raw_type) if message_type is MessageType.OTHER and raw_type else None,
        contact_name=contact_names.get(sender_id),
    )


def _parse_status(tenant_id: str, status: Any) -> StatusUpdate:
    if not isinstance(status, dict):
        raise InvalidPayloadError("status is not an object")

    raw_status = status.get("status")
    try:
        delivery_status = DeliveryStatus(raw_status)
    except ValueError:
        raise InvalidPayloadError(f"unknown status value: {raw_status!r}") from None

    return StatusUpdate(
        tenant_id=tenant_id,
        message_id=_required_str(status, "id"),
        status=delivery_status,
        timestamp=str(status.get("timestamp") or ""),
        recipient_id=str(status.get("recipient_id") or ""),
    )


def _skip_element(
    result: NormalizedEnvelope,
    entry_index: int,
    change_index: int,
    tenant_id: str,
    kind: str,
    error: Exception,
) -> None:
    logger.warning(
        f"{kind} skipped: invalid shape",
        extra={
            "extra_fields": safe_log_context(
                stage="normalize",
                tenant_id=tenant_id,
                entry_index=entry_index,
                change_index=change_index,
                reason=str(error),
            )
        },
    )
    result.skipped.append(SkippedChange(entry_index, change_index, f"{kind}: {error}"))


def _contact_names(contacts: Any) -> dict[str, str]:
    names: dict[str, str] = {}
    for contact in _as_list(contacts):
        if not isinstance(contact, dict):
            continue
        wa_id = contact.get("wa_id")
        profile = contact.get("profile")
        name = profile.get("name") if isinstance(profile, dict) else None
        if isinstance(wa_id, str) and isinstance(name, str) and name:
            names[wa_id] = name
    return names


def _required_str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value:
        raise InvalidPayloadError(f"missing or invalid {key}")
    return value


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []
