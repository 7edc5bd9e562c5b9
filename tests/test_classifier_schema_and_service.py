import asyncio
import json

import pytest

from orderbot.ai.mock_provider import MockProvider
from orderbot.ai.schema import ClassifierResult, fallback_result
from orderbot.ai.service import (
    APOLOGY_REPLY,
    ClassifierService,
    ReplyGenerator,
    parse_classifier_payload,
    trim_history,
)
from orderbot.core.errors import ClassifierError
from tests.fixtures_data import CATALOG_PRODUCTS, ORDER_MESSAGE, READY_ORDER_RESULT


class FakeProvider:
    name = "fake"

    def __init__(self, raw=None, *, error=None, reply="Сайн байна уу", delay=0.0):
        self.raw = raw
        self.error = error
        self.reply = reply
        self.delay = delay
        self.calls = []

    async def classify(self, message, history, catalog):
        self.calls.append({"message": message, "history": history, "catalog": catalog})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.raw

    async def generate_reply(self, result, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply


def test_result_accepts_snake_case_and_loose_values():
    result = ClassifierResult.model_validate(
        {
            "intent": "ORDERING",
            "is_order_ready": "true",
            "confidence": "0.8",
            "data": {
                "items": [{"item_name": "Хар цамц", "qty": "2", "unit_price": "15,000"}],
                "phone_number": "99119911",
                "address": "БЗД",
            },
            "missing_fields": "payment_method",
        }
    )

    assert result.intent == "ordering"
    assert result.is_order_ready is True
    assert result.confidence == 0.8
    assert result.data.items[0].name == "Хар цамц"
    assert result.data.items[0].quantity == 2
    assert result.data.items[0].price == 15000
    assert result.data.phone == "99119911"
    assert result.data.full_address == "БЗД"
    assert result.missing_fields == ["payment_method"]


def test_result_clamps_confidence_and_maps_unknown_intent():
    assert ClassifierResult.model_validate({"intent": "shopping", "confidence": 7}).intent == "other"
    assert ClassifierResult.model_validate({"confidence": 7}).confidence == 1.0
    assert ClassifierResult.model_validate({"confidence": -1}).confidence == 0.0
    assert ClassifierResult.model_validate({"confidence": "n/a"}).confidence == 0.0


def test_result_accepts_legacy_single_item_shape():
    result = ClassifierResult.model_validate(
        {"intent": "ordering", "data": {"item_name": "Арьсан цүнх", "quantity": 3, "phone": "null"}}
    )

    assert len(result.data.items) == 1
    assert result.data.items[0].name == "Арьсан цүнх"
    assert result.data.items[0].quantity == 3
    assert result.data.phone is None


def test_result_drops_invalid_quantities_and_prices():
    result = ClassifierResult.model_validate(
        {"data": {"items": [{"name": "Хар цамц", "quantity": 0, "price": -5}, "Цагаан малгай", 42]}}
    )

    assert [item.name for item in result.data.items] == ["Хар цамц", "Цагаан малгай"]
    assert result.data.items[0].quantity is None
    assert result.data.items[0].price is None


def test_payload_round_trips_through_aliases():
    payload = ClassifierResult.model_validate(READY_ORDER_RESULT).to_payload()

    assert payload["isOrderReady"] is True
    assert payload["missingFields"] == []
    assert payload["data"]["items"][0]["quantity"] == 2


def test_fallback_result_shape():
    result = fallback_result()

    assert result.intent == "other"
    assert result.is_order_ready is False
    assert result.confidence == 0.0
    assert result.data.items == []
    assert result.missing_fields == ["items"]


def test_parse_classifier_payload_handles_fences_and_prose():
    fenced = "```json\n" + json.dumps(READY_ORDER_RESULT, ensure_ascii=False) + "\n```"
    prose = "Энд байна: " + json.dumps(READY_ORDER_RESULT, ensure_ascii=False) + " баярлалаа"

    assert parse_classifier_payload(fenced).intent == "ordering"
    assert parse_classifier_payload(prose).confidence == 0.75


def test_parse_classifier_payload_keeps_raw_object():
    raw = {
        "intent": "ordering",
        "is_order_ready": "yes",
        "confidence": "0.8",
        "data": {"items": [{"name": "Хар цамц", "quantity": "2 ширхэг", "color": "хар"}], "address": "БЗД"},
        "note": "extra",
    }

    result = parse_classifier_payload(json.dumps(raw, ensure_ascii=False))
    raw["data"]["items"].clear()

    assert result.data.items[0].quantity == 2
    assert result.data.full_address == "БЗД"
    assert result.raw_data == {
        "items": [{"name": "Хар цамц", "quantity": "2 ширхэг", "color": "хар"}],
        "address": "БЗД",
    }
    assert result.raw_payload["note"] == "extra"
    assert ClassifierResult.model_validate(READY_ORDER_RESULT).raw_payload == ClassifierResult.model_validate(
        READY_ORDER_RESULT
    ).to_payload()


def test_parse_classifier_payload_rejects_garbage():
    for raw in ["", "not json at all", "[1, 2, 3]", None]:
        with pytest.raises(ClassifierError):
            parse_classifier_payload(raw)


def test_trim_history_keeps_most_recent_turns():
    history = [{"sender": "customer", "text": f"msg {idx}"} for idx in range(8)]

    trimmed = trim_history(history, window=5)

    assert [turn["text"] for turn in trimmed] == ["msg 3", "msg 4", "msg 5", "msg 6", "msg 7"]
    assert trim_history(history, window=0) == []


def test_service_passes_trimmed_history_and_catalog():
    provider = FakeProvider(READY_ORDER_RESULT)
    service = ClassifierService(provider, timeout_seconds=1, history_window=2)
    history = [{"sender": "customer", "text": "a"}, {"sender": "bot", "text": "b"}, {"sender": "customer", "text": "c"}]

    result = asyncio.run(service.process_message("d", history, CATALOG_PRODUCTS))

    assert result.intent == "ordering"
    assert provider.calls[0]["history"] == [{"sender": "bot", "text": "b"}, {"sender": "customer", "text": "c"}]
    assert provider.calls[0]["catalog"] == CATALOG_PRODUCTS


def test_service_returns_fallback_when_provider_raises():
    service = ClassifierService(FakeProvider(error=RuntimeError("boom")), timeout_seconds=1)

    result = asyncio.run(service.process_message("сайн уу", [], []))

    assert result == fallback_result()


def test_service_returns_fallback_on_unparsable_content():
    service = ClassifierService(FakeProvider("I am not JSON"), timeout_seconds=1)

    result = asyncio.run(service.process_message("сайн уу", [], []))

    assert result == fallback_result()


def test_service_returns_fallback_on_timeout():
    service = ClassifierService(FakeProvider(READY_ORDER_RESULT, delay=0.5), timeout_seconds=0.01)

    result = asyncio.run(service.process_message("сайн уу", [], []))

    assert result == fallback_result()


def test_reply_generator_falls_back_to_apology():
    failing = ReplyGenerator(FakeProvider(error=RuntimeError("down")), timeout_seconds=1)
    empty = ReplyGenerator(FakeProvider(reply="   "), timeout_seconds=1)

    assert asyncio.run(failing.generate(fallback_result(), "hi")) == APOLOGY_REPLY
    assert asyncio.run(empty.generate(fallback_result(), "hi")) == APOLOGY_REPLY


def test_mock_provider_extracts_complete_order():
    raw = asyncio.run(MockProvider().classify(ORDER_MESSAGE, [], CATALOG_PRODUCTS))
    result = parse_classifier_payload(raw)

    assert result.intent == "ordering"
    assert result.is_order_ready is True
    assert result.confidence > 0.6
    assert result.data.items[0].name == "Хар цамц"
    assert result.data.items[0].quantity == 2
    assert result.data.phone == "99119911"
    assert result.data.full_address == "Баянзүрх дүүрэг, 1-р хороо, 15-р байр"


def test_mock_provider_uses_history_for_missing_details():
    history = [{"sender": "customer", "text": "2 ширхэг хар цамц авъя"}, {"sender": "bot", "text": "Утсаа бичнэ үү"}]

    raw = asyncio.run(MockProvider().classify("99119911, схд 5-р хороо", history, CATALOG_PRODUCTS))
    result = parse_classifier_payload(raw)

    assert result.intent == "ordering"
    assert result.is_order_ready is True
    assert result.data.items[0].quantity == 2


def test_mock_provider_detects_questions_and_missing_fields():
    inquiry = parse_classifier_payload(
        asyncio.run(MockProvider().classify("Хүргэлт хэд вэ?", [], CATALOG_PRODUCTS))
    )
    partial = parse_classifier_payload(
        asyncio.run(MockProvider().classify("хар цамц авъя", [], CATALOG_PRODUCTS))
    )

    assert inquiry.intent == "inquiry"
    assert inquiry.is_order_ready is False
    assert partial.intent == "ordering"
    assert partial.is_order_ready is False
    assert partial.missing_fields == ["phone", "full_address"]
