import os

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except Exception:
        return int(default)


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "1" if default else "0").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return bool(default)


class Settings:
    APP_NAME = os.getenv("APP_NAME", "GroomBook").strip() or "GroomBook"
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./groombook.db")
    DB_AUTO_CREATE_ALL = _get_bool("DB_AUTO_CREATE_ALL", True)

    HOST = os.getenv("HOST", "127.0.0.1").strip() or "127.0.0.1"
    PORT = _get_int("PORT", 8000)
    RELOAD = _get_bool("RELOAD", False)

    CADENCE_CEILING_DAYS = _get_int("CADENCE_CEILING_DAYS", 30)
    DUE_SOON_HORIZON_DAYS = _get_int("DUE_SOON_HORIZON_DAYS", 7)
    FOLLOW_UP_STALE_DAYS = _get_int("FOLLOW_UP_STALE_DAYS", 60)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    LOG_JSON = _get_bool("LOG_JSON", True)

    SECURITY_HEADERS_ENABLED = _get_bool("SECURITY_HEADERS_ENABLED", True)


settings = Settings()
