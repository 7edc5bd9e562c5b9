from __future__ import annotations

import logging
import uuid
from typing import Any

from orderbot.messenger.base import SendResult, safe_json

logger = logging.getLogger(__name__)


class MockMessengerProvider:
    """Keeps outgoing messages in memory and logs them instead of calling the Graph API."""

    name = "mock"

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.actions: list[dict[str, str]] = []
        self.profiles: dict[str, dict[str, Any]] = {}

    async def send_text(self, recipient_id: str, text: str) -> SendResult:
        message_id = f"mock-{uuid.uuid4().hex[:10]}"
        entry = {"recipient_id": recipient_id, "text": text, "message_id": message_id}
        self.sent.append(entry)
        logger.info("mock messenger send %s", safe_json(entry))
        return SendResult(status="sent", recipient_id=recipient_id, message_id=message_id)

    async def send_sender_action(self, recipient_id: str, action: str) -> None:
        self.actions.append({"recipient_id": recipient_id, "action": action})

    async def get_user_profile(self, user_id: str) -> dict[str, Any]:
        return dict(self.profiles.get(user_id) or {})

    async def close(self) -> None:
        return None
