from __future__ import annotations

import copy
import math
import re
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

CLASSIFIER_INTENTS = ("ordering", "inquiry", "complaint", "browsing", "other")
FALLBACK_MISSING_FIELDS = ["items"]

_TRUE_STRINGS = {"1", "true", "yes", "y", "on", "тийм"}
_NUMBER_NOISE = re.compile(r"[^\d.\-]")


def _rename(payload: dict[str, Any], aliases: dict[str, str]) -> dict[str, Any]:
    data = dict(payload)
    for source, target in aliases.items():
        if source in data and data.get(target) is None:
            data[target] = data.pop(source)
    return data


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a"}:
        return None
    return text


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = _NUMBER_NOISE.sub("", str(value).replace(",", ""))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class ExtractedItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    quantity: int | None = None
    price: float | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"name": value}
        if isinstance(value, BaseModel):
            return value
        if not isinstance(value, dict):
            return {}
        return _rename(value, {"item_name": "name", "itemName": "name", "qty": "quantity", "unit_price": "price"})

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _clean_quantity(cls, value: Any) -> int | None:
        number = _to_number(value)
        if number is None or number < 1:
            return None
        return int(number)

    @field_validator("price", mode="before")
    @classmethod
    def _clean_price(cls, value: Any) -> float | None:
        number = _to_number(value)
        if number is None or number < 0:
            return None
        return number

    @field_validator("attributes", mode="before")
    @classmethod
    def _clean_attributes(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}


class ExtractedData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: List[ExtractedItem] = Field(default_factory=list)
    phone: str | None = None
    full_address: str | None = None
    payment_method: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, value: Any) -> Any:
        if isinstance(value, BaseModel):
            return value
        if not isinstance(value, dict):
            return {}
        data = _rename(value, {"phone_number": "phone", "address": "full_address", "fullAddress": "full_address"})
        items = data.get("items")
        legacy_name = data.get("item_name") or data.get("name")
        if items is None and legacy_name:
            # single-item shape from the older extraction prompt
            items = [{"name": legacy_name, "quantity": data.get("quantity")}]
        if isinstance(items, dict):
            items = [items]
        data["items"] = [item for item in items if isinstance(item, (dict, str, ExtractedItem))] if isinstance(items, list) else []
        return data

    @field_validator("phone", "full_address", "payment_method", mode="before")
    @classmethod
    def _clean_text(cls, value: Any) -> str | None:
        return _optional_text(value)


class ClassifierResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    intent: str = "other"
    is_order_ready: bool = Field(False, alias="isOrderReady")
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    data: ExtractedData = Field(default_factory=ExtractedData)
    missing_fields: List[str] = Field(default_factory=list, alias="missingFields")

    _raw: dict[str, Any] | None = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        data = _rename(value, {"is_order_ready": "isOrderReady", "missing_fields": "missingFields"})
        if data.get("data") is None:
            data["data"] = {}
        return data

    @field_validator("intent", mode="before")
    @classmethod
    def _clean_intent(cls, value: Any) -> str:
        intent = str(value or "").strip().lower()
        return intent if intent in CLASSIFIER_INTENTS else "other"

    @field_validator("is_order_ready", mode="before")
    @classmethod
    def _clean_ready(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value == 1
        return str(value or "").strip().lower() in _TRUE_STRINGS

    @field_validator("confidence", mode="before")
    @classmethod
    def _clean_confidence(cls, value: Any) -> float:
        number = _to_number(value)
        if number is None:
            return 0.0
        return min(max(number, 0.0), 1.0)

    @field_validator("missing_fields", mode="before")
    @classmethod
    def _clean_missing(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [str(field).strip() for field in value if str(field or "").strip()]

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def keep_raw(self, payload: dict[str, Any]) -> None:
        self._raw = copy.deepcopy(payload)

    @property
    def raw_payload(self) -> dict[str, Any]:
        """The classifier object exactly as the model returned it, for audit columns."""
        if self._raw is None:
            return self.to_payload()
        return copy.deepcopy(self._raw)

    @property
    def raw_data(self) -> Any:
        return self.raw_payload.get("data")


def fallback_result() -> ClassifierResult:
    return ClassifierResult(
        intent="other",
        is_order_ready=False,
        confidence=0.0,
        data=ExtractedData(items=[], phone=None, full_address=None),
        missing_fields=list(FALLBACK_MISSING_FIELDS),
    )
