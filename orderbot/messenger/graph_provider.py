from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from orderbot.core.config import META_API_VERSION, MESSENGER_SEND_TIMEOUT_SECONDS
from orderbot.core.errors import MessengerSendError
from orderbot.messenger.base import SendResult

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"
# Messenger rejects text messages longer than this
MAX_TEXT_LENGTH = 2000


def _should_retry(status_code: int, body_text: str) -> bool:
    if status_code in (500, 502, 503, 504):
        return True

    # transient Graph API errors: 1 unknown, 2 service unavailable
    try:
        data = json.loads(body_text or "{}")
    except json.JSONDecodeError:
        return False
    code = (data.get("error") or {}).get("code") if isinstance(data, dict) else None
    return code in (1, 2)


def _backoff_seconds(attempt: int) -> float:
    # 1s, 2s, 4s... capped at 8s
    sec = 1.0 * (2 ** max(0, attempt - 1))
    return min(sec, 8.0)


class GraphMessengerProvider:
    name = "graph"
    MAX_RETRIES = 3

    def __init__(
        self,
        *,
        access_token: str,
        api_version: str = META_API_VERSION,
        timeout: float = MESSENGER_SEND_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token
        self._base_url = f"{GRAPH_BASE_URL}/{api_version}"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send_text(self, recipient_id: str, text: str) -> SendResult:
        payload = {
            "recipient": {"id": recipient_id},
            "messaging_type": "RESPONSE",
            "message": {"text": (text or "")[:MAX_TEXT_LENGTH]},
        }
        data = await self._post("/me/messages", payload)
        return SendResult(
            status="sent",
            recipient_id=recipient_id,
            message_id=data.get("message_id"),
            response_payload=data,
        )

    async def send_sender_action(self, recipient_id: str, action: str) -> None:
        await self._post("/me/messages", {"recipient": {"id": recipient_id}, "sender_action": action}, retries=1)

    async def get_user_profile(self, user_id: str) -> dict[str, Any]:
        response = await self._client.get(
            f"{self._base_url}/{user_id}",
            params={"fields": "first_name,last_name,name", "access_token": self._access_token},
        )
        if not 200 <= response.status_code < 300:
            raise MessengerSendError(response.status_code, response.text)
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any], *, retries: int | None = None) -> dict[str, Any]:
        retries = retries or self.MAX_RETRIES
        url = f"{self._base_url}{path}"
        params = {"access_token": self._access_token}

        for attempt in range(1, retries + 1):
            try:
                response = await self._client.post(url, params=params, json=payload)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < retries:
                    logger.warning("messenger request failed attempt=%s error=%s", attempt, exc.__class__.__name__)
                    await asyncio.sleep(_backoff_seconds(attempt))
                    continue
                raise

            body_text = response.text
            if 200 <= response.status_code < 300:
                try:
                    return response.json()
                except json.JSONDecodeError:
                    return {"raw": body_text}

            if _should_retry(response.status_code, body_text) and attempt < retries:
                logger.warning("messenger request retry attempt=%s status_code=%s", attempt, response.status_code)
                await asyncio.sleep(_backoff_seconds(attempt))
                continue

            raise MessengerSendError(response.status_code, body_text)

        raise MessengerSendError(0, "no attempts made")
