from __future__ import annotations

import logging

from orderbot.core.config import FACEBOOK_PAGE_ACCESS_TOKEN, IS_DEV
from orderbot.core.errors import MessengerSendError
from orderbot.messenger.base import MessengerProvider, SendResult
from orderbot.messenger.graph_provider import GraphMessengerProvider
from orderbot.messenger.mock_provider import MockMessengerProvider

logger = logging.getLogger(__name__)


def _select_provider(access_token: str | None) -> MessengerProvider:
    if access_token:
        return GraphMessengerProvider(access_token=access_token)
    logger.warning("FACEBOOK_PAGE_ACCESS_TOKEN is empty, messages are only logged")
    return MockMessengerProvider()


class MessengerService:
    def __init__(
        self,
        provider: MessengerProvider | None = None,
        *,
        fallback_to_mock: bool = IS_DEV,
    ) -> None:
        self.provider = provider or _select_provider(FACEBOOK_PAGE_ACCESS_TOKEN)
        self._mock_provider = MockMessengerProvider()
        self._fallback_to_mock = fallback_to_mock

    async def send_text(self, recipient_id: str, text: str) -> SendResult:
        try:
            return await self.provider.send_text(recipient_id, text)
        except MessengerSendError as exc:
            if self._fallback_to_mock and self.provider.name != self._mock_provider.name:
                logger.warning("Messenger send failed status_code=%s, using mock", exc.status_code)
                return await self._mock_provider.send_text(recipient_id, text)
            raise

    async def set_typing(self, recipient_id: str, on: bool) -> None:
        action = "typing_on" if on else "typing_off"
        try:
            await self.provider.send_sender_action(recipient_id, action)
        except Exception as exc:
            logger.warning("sender action %s failed error=%s", action, exc)

    async def get_user_name(self, user_id: str) -> str | None:
        try:
            profile = await self.provider.get_user_profile(user_id)
        except Exception as exc:
            logger.warning("user profile lookup failed error=%s", exc)
            return None
        name = (profile.get("name") or "").strip()
        if not name:
            name = " ".join(part for part in (profile.get("first_name"), profile.get("last_name")) if part).strip()
        return name or None

    async def close(self) -> None:
        await self.provider.close()
