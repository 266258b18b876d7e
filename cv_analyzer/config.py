# cv_analyzer/config.py
import os


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class BaseConfig:
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://redis:6379/0")
    CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://redis:6379/0")

    # --- DB ---
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "postgresql+psycopg2://app_user:app_pass@db:5432/app_db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # --- LLM ---
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    LLM_MODEL = os.environ.get("LLM_MODEL", "gemini-2.5-flash")
    LLM_TIMEOUT_S = _env_float("LLM_TIMEOUT_S", 90.0)

    # --- Pipeline ---
    MAX_INPUT_CHARS = int(os.environ.get("MAX_INPUT_CHARS", "60000"))
    OWNER_HEADER = os.environ.get("OWNER_HEADER", "X-Owner-Id")
    POLL_INTERVAL_S = _env_float("POLL_INTERVAL_S", 1.5)

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
    METRICS_ENABLED = True


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class ProductionConfig(BaseConfig):
    DEBUG = False
    ENV = "production"


class TestingConfig(BaseConfig):
    TESTING = True
    ENV = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = "cache+memory://"
    GEMINI_API_KEY = "test-key"
    LLM_TIMEOUT_S = 5.0
    POLL_INTERVAL_S = 0.01
