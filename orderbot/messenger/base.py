from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class InboundEvent:
    sender_id: str
    text: str | None = None
    has_attachment: bool = False
    event_id: str | None = None
    postback_payload: str | None = None
    timestamp: int | None = None


@dataclass
class SendResult:
    status: str
    recipient_id: str
    message_id: str | None = None
    response_payload: dict[str, Any] | None = None


class MessengerProvider(Protocol):
    name: str

    async def send_text(self, recipient_id: str, text: str) -> SendResult:
        ...

    async def send_sender_action(self, recipient_id: str, action: str) -> None:
        ...

    async def get_user_profile(self, user_id: str) -> dict[str, Any]:
        ...

    async def close(self) -> None:
        ...


def parse_messenger_webhook(payload: dict[str, Any]) -> list[InboundEvent]:
    events: list[InboundEvent] = []
    for entry in payload.get("entry", []) or []:
        for messaging in entry.get("messaging", []) or []:
            sender_id = str((messaging.get("sender") or {}).get("id") or "")
            if not sender_id:
                continue
            timestamp = messaging.get("timestamp")

            postback = messaging.get("postback")
            if postback:
                events.append(
                    InboundEvent(
                        sender_id=sender_id,
                        postback_payload=str(postback.get("payload") or ""),
                        event_id=postback.get("mid"),
                        timestamp=timestamp,
                    )
                )
                continue

            message = messaging.get("message")
            if not message or message.get("is_echo"):
                continue
            text = (message.get("text") or "").strip()
            events.append(
                InboundEvent(
                    sender_id=sender_id,
                    text=text or None,
                    has_attachment=bool(message.get("attachments")),
                    event_id=message.get("mid"),
                    timestamp=timestamp,
                )
            )
    return events


SENSITIVE_KEYS = {"access_token", "verify_token", "hub.verify_token", "authorization", "token"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if key.lower() in SENSITIVE_KEYS:
            return _mask_value(value)
        return _sanitize(value)

    return _sanitize(payload)


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return "{}"
