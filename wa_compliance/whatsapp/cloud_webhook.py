from __future__ import annotations

from typing import Any

from wa_compliance.services.compliance.types import InteractionType

# Cloud API delivery statuses; "sent" is what the send limits count.
STATUS_INTERACTIONS = {
    "sent": InteractionType.MESSAGE_SENT,
    "delivered": InteractionType.DELIVERED,
    "read": InteractionType.READ,
    "failed": InteractionType.FAILED,
}

# Meta failure codes for an undeliverable recipient (blocked number included) and
# for messages withheld to protect ecosystem engagement.
BLOCKED_ERROR_CODES = {131026, 131049}


def _iter_values(payload: dict[str, Any]):
    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            yield change.get("value") or {}


def parse_cloud_messages(payload: dict[str, Any]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    for value in _iter_values(payload):
        metadata = value.get("metadata") or {}
        phone_number_id = metadata.get("phone_number_id")

        contacts = value.get("contacts") or []
        contact_name = None
        if contacts:
            contact_name = ((contacts[0].get("profile") or {}).get("name")) or None

        for msg in value.get("messages", []) or []:
            msg_type = msg.get("type") or "text"
            text = ""
            if msg_type == "text":
                text = ((msg.get("text") or {}).get("body")) or ""
            elif msg_type == "button":
                text = ((msg.get("button") or {}).get("text")) or ""
            message_id = msg.get("id")
            from_number = msg.get("from")
            if not message_id or not from_number:
                continue
            messages.append(
                {
                    "message_id": message_id,
                    "from_number": from_number,
                    "text": text.strip(),
                    "message_type": msg_type,
                    "phone_number_id": phone_number_id,
                    "contact_name": contact_name,
                }
            )
    return messages


def _status_interaction(status: dict[str, Any]) -> InteractionType | None:
    name = (status.get("status") or "").strip().lower()
    interaction = STATUS_INTERACTIONS.get(name)
    if interaction is InteractionType.FAILED:
        codes = {error.get("code") for error in status.get("errors", []) or [] if isinstance(error, dict)}
        if codes & BLOCKED_ERROR_CODES:
            return InteractionType.BLOCKED
    return interaction


def parse_cloud_statuses(payload: dict[str, Any]) -> list[dict[str, Any]]:
    statuses: list[dict[str, Any]] = []
    for value in _iter_values(payload):
        for status in value.get("statuses", []) or []:
            recipient = status.get("recipient_id")
            interaction = _status_interaction(status)
            if not recipient or interaction is None:
                continue
            statuses.append(
                {
                    "message_id": status.get("id"),
                    "recipient": recipient,
                    "interaction_type": interaction,
                    "status": status.get("status"),
                    "errors": [error.get("code") for error in status.get("errors", []) or [] if isinstance(error, dict)],
                }
            )
    return statuses
