"""Reusable data for backend test scenarios."""

SENDER_ID = "2411000000000001"

CATALOG_PRODUCTS = [
    {"name": "Хар цамц", "price": 15000, "stock": 10},
    {"name": "Цагаан малгай", "price": 12000, "stock": 0},
    {"name": "Арьсан цүнх", "price": 45000, "stock": 3},
]

ORDER_MESSAGE = "2 ширхэг хар цамц авъя. 99119911, БЗД 1-р хороо 15-р байр"

READY_ORDER_RESULT = {
    "intent": "ordering",
    "isOrderReady": True,
    "confidence": 0.75,
    "data": {
        "items": [{"name": "Хар цамц", "quantity": 2, "price": 15000}],
        "phone": "99119911",
        "full_address": "БЗД, 1-р хороо, 15-р байр",
        "payment_method": None,
    },
    "missingFields": [],
}

WAITING_ORDER_RESULT = {
    "intent": "ordering",
    "isOrderReady": False,
    "confidence": 0.6,
    "data": {
        "items": [{"name": "Хар цамц", "quantity": 2}],
        "phone": None,
        "full_address": None,
    },
    "missingFields": ["phone", "full_address"],
}

INQUIRY_RESULT = {
    "intent": "inquiry",
    "isOrderReady": False,
    "confidence": 0.9,
    "data": {"items": [], "phone": None, "full_address": None},
    "missingFields": [],
}


def messenger_text_payload(text, *, mid="m_1", sender_id=SENDER_ID):
    return {
        "object": "page",
        "entry": [
            {
                "id": "PAGE_ID",
                "time": 1700000000000,
                "messaging": [
                    {
                        "sender": {"id": sender_id},
                        "recipient": {"id": "PAGE_ID"},
                        "timestamp": 1700000000000,
                        "message": {"mid": mid, "text": text},
                    }
                ],
            }
        ],
    }
