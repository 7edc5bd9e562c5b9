from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from orderbot.ai.prompts import REPLY_SYSTEM_PROMPT, build_classifier_prompt, build_reply_prompt
from orderbot.core.errors import ClassifierError

logger = logging.getLogger(__name__)


def _history_to_messages(history: list[dict[str, Any]]) -> list[dict[str, str]]:
    messages = []
    for turn in history:
        role = "assistant" if turn.get("sender") == "bot" else "user"
        messages.append({"role": role, "content": str(turn.get("text") or "")})
    return messages


class OpenAIProvider:
    name = "openai"

    def __init__(self, *, api_key: str, model: str, client: AsyncOpenAI | None = None) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def classify(
        self,
        message: str,
        history: list[dict[str, Any]],
        catalog: list[dict[str, Any]],
    ) -> str:
        messages = [{"role": "system", "content": build_classifier_prompt(catalog)}]
        messages.extend(_history_to_messages(history))
        messages.append({"role": "user", "content": message})

        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        usage = getattr(completion, "usage", None)
        logger.info(
            "classifier completion model=%s total_tokens=%s",
            self.model,
            getattr(usage, "total_tokens", None),
        )
        if not completion.choices:
            raise ClassifierError("classifier returned no choices")
        return completion.choices[0].message.content or ""

    async def generate_reply(self, result: dict[str, Any], message: str) -> str:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": REPLY_SYSTEM_PROMPT},
                {"role": "user", "content": build_reply_prompt(result, message)},
            ],
            temperature=0.7,
            max_tokens=200,
        )
        if not completion.choices:
            raise ClassifierError("reply generation returned no choices")
        content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise ClassifierError("reply generation returned empty content")
        return content

    async def close(self) -> None:
        await self._client.close()
