from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from orderbot.ai.base import ClassifierProvider
from orderbot.ai.mock_provider import MockProvider
from orderbot.ai.openai_provider import OpenAIProvider
from orderbot.ai.schema import ClassifierResult, fallback_result
from orderbot.core.config import (
    AI_PROVIDER,
    CLASSIFIER_TIMEOUT_SECONDS,
    HISTORY_WINDOW,
    OPENAI_API_KEY,
    OPENAI_MODEL,
    REPLY_TIMEOUT_SECONDS,
)
from orderbot.core.errors import ClassifierError

logger = logging.getLogger(__name__)

APOLOGY_REPLY = "Уучлаарай, алдаа гарлаа. Дахин оролдоно уу."

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def get_provider(provider_name: str | None = None) -> ClassifierProvider:
    provider = (provider_name or AI_PROVIDER or "mock").strip().lower()
    if provider == "openai":
        if not OPENAI_API_KEY:
            logger.warning("AI_PROVIDER=openai but OPENAI_API_KEY is empty, using mock provider")
            return MockProvider()
        return OpenAIProvider(api_key=OPENAI_API_KEY, model=OPENAI_MODEL)
    return MockProvider()


def trim_history(history: list[Any], window: int = HISTORY_WINDOW) -> list[dict[str, str]]:
    """Keep only the most recent ``window`` turns; older context is dropped."""
    if window <= 0:
        return []
    trimmed = []
    for turn in list(history or [])[-window:]:
        if isinstance(turn, dict):
            sender, text = turn.get("sender"), turn.get("text")
        else:
            sender, text = getattr(turn, "sender", None), getattr(turn, "text", None)
        trimmed.append({"sender": str(sender or "customer"), "text": str(text or "")})
    return trimmed


def parse_classifier_payload(raw: dict[str, Any] | str | None) -> ClassifierResult:
    if isinstance(raw, dict):
        payload: Any = raw
    else:
        text = _CODE_FENCE.sub("", (raw or "").strip())
        if not text:
            raise ClassifierError("empty classifier response")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            # the model sometimes wraps the object in prose
            start, end = text.find("{"), text.rfind("}")
            if start == -1 or end <= start:
                raise ClassifierError("classifier response is not JSON")
            try:
                payload = json.loads(text[start : end + 1])
            except json.JSONDecodeError as exc:
                raise ClassifierError(f"classifier response is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ClassifierError("classifier response is not a JSON object")
    result = ClassifierResult.model_validate(payload)
    result.keep_raw(payload)
    return result


class ClassifierService:
    def __init__(
        self,
        provider: ClassifierProvider,
        *,
        timeout_seconds: float = CLASSIFIER_TIMEOUT_SECONDS,
        history_window: int = HISTORY_WINDOW,
    ) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.history_window = history_window

    async def process_message(
        self,
        message: str,
        history: list[Any],
        catalog: list[dict[str, Any]],
    ) -> ClassifierResult:
        trimmed = trim_history(history, self.history_window)
        try:
            raw = await asyncio.wait_for(
                self.provider.classify(message, trimmed, catalog),
                timeout=self.timeout_seconds,
            )
            result = parse_classifier_payload(raw)
        except asyncio.TimeoutError:
            logger.warning("classifier timed out after %ss provider=%s", self.timeout_seconds, self.provider.name)
            return fallback_result()
        except (ClassifierError, ValidationError) as exc:
            logger.warning("classifier returned unusable content provider=%s error=%s", self.provider.name, exc)
            return fallback_result()
        except Exception:
            logger.exception("classifier call failed provider=%s", self.provider.name)
            return fallback_result()

        logger.info(
            "classifier result intent=%s ready=%s confidence=%.2f items=%s missing=%s",
            result.intent,
            result.is_order_ready,
            result.confidence,
            len(result.data.items),
            ",".join(result.missing_fields),
        )
        return result


class ReplyGenerator:
    def __init__(self, provider: ClassifierProvider, *, timeout_seconds: float = REPLY_TIMEOUT_SECONDS) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    async def generate(self, result: ClassifierResult, message: str) -> str:
        try:
            reply = await asyncio.wait_for(
                self.provider.generate_reply(result.to_payload(), message),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("reply generation timed out after %ss", self.timeout_seconds)
            return APOLOGY_REPLY
        except Exception:
            logger.exception("reply generation failed provider=%s", self.provider.name)
            return APOLOGY_REPLY
        reply = (reply or "").strip()
        return reply or APOLOGY_REPLY
