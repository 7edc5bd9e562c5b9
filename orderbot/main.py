import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderbot.ai.service import ClassifierService, ReplyGenerator, get_provider
from orderbot.core.config import DATABASE_URL, ENV, SHEETS_ENABLED
from orderbot.core.database import Base, SessionLocal, engine, get_db
from orderbot.core.logging_setup import configure_logging
from orderbot.core.startup_checks import (
    ensure_migrations_applied,
    ensure_tables_exist,
    validate_database_environment,
)
from orderbot.messenger.service import MessengerService
from orderbot.middleware.observability import ObservabilityMiddleware
import orderbot.models  # registers every table on Base.metadata before create_all
from orderbot.routers.webhook import router as webhook_router
from orderbot.services.locks import ConversationLockRegistry
from orderbot.services.message_processor import MessageProcessor
from orderbot.sheets.google_sheets import GoogleSheetsMirror

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_tables_exist(engine=engine)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


async def _build_mirror() -> GoogleSheetsMirror | None:
    if not SHEETS_ENABLED:
        logger.info("%s Google Sheets mirror disabled", STARTUP_PREFIX)
        return None
    mirror = GoogleSheetsMirror()
    if not mirror.configured:
        logger.warning("%s Google Sheets credentials missing, orders are not mirrored", STARTUP_PREFIX)
        await mirror.close()
        return None
    # a failed init is retried on the first append
    await mirror.init()
    return mirror


@asynccontextmanager
async def lifespan(app: FastAPI):
    _startup_tasks()

    provider = get_provider()
    messenger = MessengerService()
    mirror = await _build_mirror()
    app.state.processor = MessageProcessor(
        session_factory=SessionLocal,
        classifier=ClassifierService(provider),
        replies=ReplyGenerator(provider),
        messenger=messenger,
        mirror=mirror,
        locks=ConversationLockRegistry(),
    )
    logger.info(
        "%s ready env=%s ai_provider=%s messenger=%s sheets=%s",
        STARTUP_PREFIX,
        ENV,
        provider.name,
        messenger.provider.name,
        mirror is not None,
    )
    try:
        yield
    finally:
        await app.state.processor.drain()
        await messenger.close()
        if mirror is not None:
            await mirror.close()
        close = getattr(provider, "close", None)
        if close is not None:
            await close()


app = FastAPI(
    title="Messenger Order Bot",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(ObservabilityMiddleware)

# Routers
app.include_router(webhook_router)


@app.get("/")
def root():
    return {"status": "ok", "service": "messenger-orderbot"}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("health check database query failed")
        return {"status": "degraded", "database": "unavailable"}
    return {"status": "ok", "database": "ok"}
