from __future__ import annotations

from typing import Any, Protocol


class ClassifierProvider(Protocol):
    name: str

    async def classify(
        self,
        message: str,
        history: list[dict[str, Any]],
        catalog: list[dict[str, Any]],
    ) -> dict[str, Any] | str:
        ...

    async def generate_reply(self, result: dict[str, Any], message: str) -> str:
        ...
