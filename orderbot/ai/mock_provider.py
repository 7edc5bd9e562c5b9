from __future__ import annotations

import re
from typing import Any

from orderbot.services.catalog import normalize_text
from orderbot.services.normalizer import canonical_phone, normalize_address


_PHONE_CANDIDATE = re.compile(r"(?<!\d)(\d{4})[\s-]?(\d{4})(?!\d)")
_DISTRICT = re.compile(r"([А-ЯЁӨҮа-яёөү]+(?:-[А-ЯЁӨҮа-яёөү]+)? дүүрэг)")
_KHOROO = re.compile(r"(\d{1,2}-р хороо)")
_BUILDING = re.compile(r"(\d{1,3})\s*-?\s*(?:р)?\s*байр(?!\w)", re.IGNORECASE)

_ORDER_VERBS = ("авъя", "авья", "авна", "авмаар", "захиал", "avya", "avna", "awya", "buy", "want", "order")
_QUESTION_MARKERS = ("?", "хэд вэ", "байгаа юу", "байна уу", "үнэ", "hed ve", "bgaa yu")
_COMPLAINT_MARKERS = ("гомдол", "муу", "буцаа", "ирээгүй", "луйвар", "gomdol")

_MISSING_LABELS = {
    "items": "ямар бараа, хэдэн ширхэг авах",
    "phone": "утасны дугаар",
    "full_address": "хүргэлтийн хаяг (дүүрэг, хороо)",
}


def _find_phone(text: str) -> str | None:
    for match in _PHONE_CANDIDATE.finditer(text):
        phone = canonical_phone(match.group(0))
        if phone:
            return phone
    return None


def _find_address(text: str) -> tuple[str | None, bool]:
    expanded = normalize_address(text) or ""
    district = _DISTRICT.search(expanded)
    khoroo = _KHOROO.search(expanded)
    parts = [match.group(1) for match in (district, khoroo) if match]
    building = _BUILDING.search(expanded)
    if parts and building:
        parts.append(f"{building.group(1)}-р байр")
    if not parts:
        return None, False
    return ", ".join(parts), bool(district and khoroo)


def _find_items(text: str, catalog: list[dict[str, Any]]) -> list[dict[str, Any]]:
    normalized = normalize_text(_PHONE_CANDIDATE.sub(" ", text))
    if not normalized:
        return []

    found: list[dict[str, Any]] = []
    # longer names first so "хар цамц" wins over "цамц"
    for entry in sorted(catalog, key=lambda item: len(str(item.get("name") or "")), reverse=True):
        name = str(entry.get("name") or "")
        normalized_name = normalize_text(name)
        if not normalized_name or normalized_name not in normalized:
            continue
        quantity_match = re.search(
            r"(?<!\d)(\d{1,2})\s*(?:ширхэг|shirheg|ш)?\s*" + re.escape(normalized_name),
            normalized,
        )
        found.append(
            {
                "name": name,
                "quantity": int(quantity_match.group(1)) if quantity_match else 1,
                "price": entry.get("price"),
                "attributes": {},
            }
        )
        normalized = normalized.replace(normalized_name, " ")
    return found


def _contains(text: str, markers: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


class MockProvider:
    """Rule based stand-in for the language model, used when no API key is configured."""

    name = "mock"

    async def classify(
        self,
        message: str,
        history: list[dict[str, Any]],
        catalog: list[dict[str, Any]],
    ) -> dict[str, Any]:
        history_text = " ".join(
            str(turn.get("text") or "") for turn in history if turn.get("sender") == "customer"
        )
        current_items = _find_items(message, catalog)
        items = current_items or _find_items(history_text, catalog)
        phone_now = _find_phone(message)
        address_now, granular_now = _find_address(message)
        phone = phone_now or _find_phone(history_text)
        if address_now:
            address, granular = address_now, granular_now
        else:
            address, granular = _find_address(history_text)
        has_contact_now = bool(phone_now or address_now)

        if _contains(message, _COMPLAINT_MARKERS):
            intent = "complaint"
        elif _contains(message, _ORDER_VERBS) or (items and has_contact_now) or (
            current_items and not _contains(message, _QUESTION_MARKERS)
        ):
            intent = "ordering"
        elif _contains(message, _QUESTION_MARKERS):
            intent = "inquiry"
        elif has_contact_now:
            intent = "ordering"
        else:
            intent = "browsing"

        missing = []
        if not items:
            missing.append("items")
        if not phone:
            missing.append("phone")
        if not granular:
            missing.append("full_address")

        is_ready = intent == "ordering" and not missing
        if is_ready:
            confidence = 0.9
        elif intent == "ordering":
            confidence = 0.6
        elif intent in {"inquiry", "complaint"}:
            confidence = 0.8
        else:
            confidence = 0.5

        return {
            "intent": intent,
            "isOrderReady": is_ready,
            "confidence": confidence,
            "data": {
                "items": items,
                "phone": phone,
                "full_address": address,
                "payment_method": None,
            },
            "missingFields": missing if intent == "ordering" else [],
        }

    async def generate_reply(self, result: dict[str, Any], message: str) -> str:
        intent = result.get("intent")
        data = result.get("data") or {}

        if intent == "ordering" and result.get("isOrderReady"):
            items = ", ".join(
                f"{item.get('name')} {item.get('quantity') or 1}ш" for item in data.get("items") or []
            )
            return (
                "✅ Таны захиалгыг хүлээн авлаа!\n"
                f"🛍 {items}\n"
                f"📞 {data.get('phone') or '-'}\n"
                f"📍 {data.get('full_address') or '-'}\n"
                "Бид удахгүй холбогдоно. Баярлалаа! 🙏"
            )
        if intent == "ordering":
            missing = [_MISSING_LABELS[field] for field in result.get("missingFields") or [] if field in _MISSING_LABELS]
            if missing:
                return f"📝 Захиалгаа баталгаажуулахын тулд {', '.join(missing)}-аа бичнэ үү."
            return "🤔 Захиалгын мэдээллээ дахин нэг баталгаажуулж өгнө үү?"
        if intent == "inquiry":
            return "🙂 Асуултад тань баярлалаа! Удахгүй дэлгэрэнгүй хариулна. Захиалах бол бараа, утас, хаягаа бичээрэй."
        if intent == "complaint":
            return "😔 Уучлаарай, таны гомдлыг хүлээн авлаа. Бид удахгүй холбогдож шийдвэрлэнэ."
        return "👋 Сайн байна уу! Танд юугаар туслах вэ?"
