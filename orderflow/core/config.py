import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orderflow.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Tenant resolution
DEFAULT_TENANT_SLUG = os.getenv("DEFAULT_TENANT_SLUG", "kopipendekar").strip().lower()
DEFAULT_ORDER_CODE_PREFIX = os.getenv("DEFAULT_ORDER_CODE_PREFIX", "KP").strip().upper()
# pickup dates, order code dates and notification times follow the store clock
STORE_TIMEZONE = ZoneInfo(os.getenv("STORE_TIMEZONE", "Asia/Jakarta"))

# Identity provider (JWT emitido pelo provedor de sessão)
IDENTITY_JWT_SECRET = os.getenv("IDENTITY_JWT_SECRET", "")
IDENTITY_JWT_ALGORITHM = os.getenv("IDENTITY_JWT_ALGORITHM", "HS256")
IDENTITY_JWT_AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE", "").strip() or None

# Authoritative access-status check
ACCESS_STATUS_URL = os.getenv("ACCESS_STATUS_URL", "").strip()
ACCESS_STATUS_API_KEY = os.getenv("ACCESS_STATUS_API_KEY", "").strip()
ACCESS_CHECK_MAX_ATTEMPTS = int(os.getenv("ACCESS_CHECK_MAX_ATTEMPTS", "3"))
ACCESS_CHECK_BASE_DELAY_SECONDS = float(os.getenv("ACCESS_CHECK_BASE_DELAY_SECONDS", "0.5"))
ACCESS_CHECK_TIMEOUT_SECONDS = float(os.getenv("ACCESS_CHECK_TIMEOUT_SECONDS", "5"))

# Persistence / notifications
PERSISTENCE_TIMEOUT_SECONDS = float(os.getenv("PERSISTENCE_TIMEOUT_SECONDS", "10"))
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))
NOTIFICATION_WORKERS = int(os.getenv("NOTIFICATION_WORKERS", "4"))
NOTIFICATIONS_ASYNC = _env_flag("NOTIFICATIONS_ASYNC", "1")

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org").rstrip("/")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
