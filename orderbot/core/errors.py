from __future__ import annotations


class OrderBotError(Exception):
    """Base class for errors raised inside the order bot."""


class ClassifierError(OrderBotError):
    """The language model call failed or returned content that cannot be used."""


class OrderPersistenceError(OrderBotError):
    def __init__(self, message: str, *, conversation_id: int | None = None):
        super().__init__(message)
        self.conversation_id = conversation_id


class MessengerSendError(OrderBotError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"Messenger error {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


class SheetsMirrorError(OrderBotError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"Google Sheets error {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text
