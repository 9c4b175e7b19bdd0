import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "trade_lifecycle",
]

MIDDLEWARE = [
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "otc_project.urls"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("OTC_DB_PATH", str(BASE_DIR / "db.sqlite3")),
        "ATOMIC_REQUESTS": False,
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "UTC")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
}

# Engine policy switches. Keys missing here fall back to trade_lifecycle.conf.DEFAULTS.
TRADE_LIFECYCLE = {
    "TRADE_ID_START": int(os.getenv("TRADE_ID_START", "10000")),
    "MAX_TRADE_DATE_AGE_DAYS": int(os.getenv("MAX_TRADE_DATE_AGE_DAYS", "30")),
    "FORCE_FINAL_STUB": _env_bool("FORCE_FINAL_STUB", False),
    "OWNERLESS_TRADER_FALLBACK": _env_bool("OWNERLESS_TRADER_FALLBACK", True),
}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "text": {"format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s"},
        "json": {"()": "otc_project.log_formatting.JsonFormatter"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if LOG_FORMAT == "json" else "text",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "trade_lifecycle": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
