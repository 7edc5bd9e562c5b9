from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orderbot.ai.mock_provider import MockProvider
from orderbot.core.database import get_db
from orderbot.messenger.mock_provider import MockMessengerProvider
from orderbot.messenger.service import MessengerService
from orderbot.services.message_processor import MessageProcessor


def _memory_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def test_api_startup_and_router_registration(monkeypatch):
    from orderbot import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)
    monkeypatch.setattr(main, "SHEETS_ENABLED", False)
    monkeypatch.setattr(main, "get_provider", lambda: MockProvider())
    monkeypatch.setattr(main, "MessengerService", lambda: MessengerService(MockMessengerProvider()))
    db = _memory_session()
    main.app.dependency_overrides[get_db] = lambda: db

    try:
        with TestClient(main.app) as client:
            response = client.get("/")
            health_response = client.get("/health")
            openapi_response = client.get("/openapi.json")
            assert isinstance(main.app.state.processor, MessageProcessor)
    finally:
        main.app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "messenger-orderbot"}
    assert health_response.json() == {"status": "ok", "database": "ok"}
    assert openapi_response.status_code == 200

    paths = {route.path for route in main.app.routes}
    assert {"/webhook", "/health"}.issubset(paths)
