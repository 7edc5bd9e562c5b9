from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from orderbot.core.config import (
    GOOGLE_PRIVATE_KEY,
    GOOGLE_SERVICE_ACCOUNT_EMAIL,
    GOOGLE_SHEET_ID,
    GOOGLE_SHEET_RANGE,
)
from orderbot.core.errors import SheetsMirrorError

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
TOKEN_URI = "https://oauth2.googleapis.com/token"

SHEET_HEADERS = [
    "Огноо",
    "Захиалгын ID",
    "Үйлчлүүлэгч",
    "Утас",
    "Хаяг",
    "Бараа",
    "Нийт дүн",
    "Төлөв",
    "AI Confidence",
    "Notes",
]


def build_order_row(order: dict[str, Any]) -> list[Any]:
    """One spreadsheet row per order, in ``SHEET_HEADERS`` column order."""
    items = ", ".join(
        f"{item.get('name')} ({item.get('quantity')})" for item in order.get("items") or []
    )
    return [
        order.get("created_at") or "",
        str(order.get("id") or ""),
        order.get("customer_name") or "Unknown",
        order.get("phone_number") or "",
        order.get("address") or "",
        items,
        order.get("total_amount") or 0,
        order.get("status") or "pending",
        order.get("confidence") or 0,
        order.get("notes") or "",
    ]


class GoogleSheetsMirror:
    def __init__(
        self,
        *,
        spreadsheet_id: str = GOOGLE_SHEET_ID,
        service_account_email: str = GOOGLE_SERVICE_ACCOUNT_EMAIL,
        private_key: str = GOOGLE_PRIVATE_KEY,
        value_range: str = GOOGLE_SHEET_RANGE,
        credentials: Any | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.value_range = value_range
        self._service_account_email = service_account_email
        self._private_key = private_key
        self._credentials = credentials
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._init_lock = asyncio.Lock()
        self.initialized = False
        self.title: str | None = None

    @property
    def configured(self) -> bool:
        if not self.spreadsheet_id:
            return False
        return self._credentials is not None or bool(self._service_account_email and self._private_key)

    async def init(self) -> bool:
        if self.initialized:
            return True
        if not self.configured:
            logger.warning("Google Sheets credentials missing")
            return False

        async with self._init_lock:
            if self.initialized:
                return True
            try:
                if self._credentials is None:
                    self._credentials = service_account.Credentials.from_service_account_info(
                        {
                            "type": "service_account",
                            "client_email": self._service_account_email,
                            "private_key": self._private_key,
                            "token_uri": TOKEN_URI,
                        },
                        scopes=SHEETS_SCOPES,
                    )
                response = await self._client.get(
                    f"{SHEETS_API_URL}/{self.spreadsheet_id}",
                    params={"fields": "properties.title"},
                    headers=await self._auth_headers(),
                )
                if not 200 <= response.status_code < 300:
                    raise SheetsMirrorError(response.status_code, response.text)
                self.title = ((response.json().get("properties") or {}).get("title")) or None
            except Exception:
                logger.exception("Google Sheets init failed")
                return False

            self.initialized = True
            logger.info("connected to Google Sheet title=%s", self.title)
            return True

    async def append_order(self, order: dict[str, Any]) -> bool:
        if not await self.init():
            return False

        url = f"{SHEETS_API_URL}/{self.spreadsheet_id}/values/{quote(self.value_range, safe='')}:append"
        response = await self._client.post(
            url,
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [build_order_row(order)]},
            headers=await self._auth_headers(),
        )
        if not 200 <= response.status_code < 300:
            raise SheetsMirrorError(response.status_code, response.text)
        logger.info("order synced to Google Sheets", extra={"order_id": order.get("id")})
        return True

    async def close(self) -> None:
        await self._client.aclose()

    async def _auth_headers(self) -> dict[str, str]:
        if not self._credentials.valid:
            # google-auth refresh is blocking
            await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
        return {"Authorization": f"Bearer {self._credentials.token}"}
