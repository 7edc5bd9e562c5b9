import os

from dotenv import load_dotenv

# .env at the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orderbot.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Facebook Messenger
FACEBOOK_VERIFY_TOKEN = os.getenv("FACEBOOK_VERIFY_TOKEN", "")
FACEBOOK_PAGE_ACCESS_TOKEN = os.getenv("FACEBOOK_PAGE_ACCESS_TOKEN", "")
META_API_VERSION = os.getenv("META_API_VERSION", "v19.0")
MESSENGER_SEND_TIMEOUT_SECONDS = _env_float("MESSENGER_SEND_TIMEOUT_SECONDS", 20.0)

# Classifier / reply generation
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
AI_PROVIDER = os.getenv("AI_PROVIDER", "openai" if OPENAI_API_KEY else "mock").strip().lower()
CLASSIFIER_TIMEOUT_SECONDS = _env_float("CLASSIFIER_TIMEOUT_SECONDS", 15.0)
REPLY_TIMEOUT_SECONDS = _env_float("REPLY_TIMEOUT_SECONDS", 15.0)
HISTORY_WINDOW = _env_int("HISTORY_WINDOW", 5)
ORDER_CONFIDENCE_THRESHOLD = _env_float("ORDER_CONFIDENCE_THRESHOLD", 0.6)
CATALOG_LIMIT = _env_int("CATALOG_LIMIT", 50)

# Google Sheets
GOOGLE_SHEET_ID = os.getenv("GOOGLE_SHEET_ID", "").strip()
GOOGLE_SERVICE_ACCOUNT_EMAIL = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "").strip()
GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")
# A1 range without a sheet name targets the first sheet
GOOGLE_SHEET_RANGE = os.getenv("GOOGLE_SHEET_RANGE", "A:J").strip() or "A:J"
SHEETS_ENABLED = _env_flag("SHEETS_ENABLED", "1")
