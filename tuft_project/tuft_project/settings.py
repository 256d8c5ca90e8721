"""
Django settings for tuft_project.

Infrastructure only: the ERP core lives in the erp_core app.
Every value can be overridden from the environment; the defaults
are meant for local development and the test suite (SQLite).
"""

import os
from decimal import Decimal
from pathlib import Path

# BASE_DIR = tuft_project/ (where manage.py lives)
BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "tuft-dev-key-replace-before-deployment")

DEBUG = env_bool("DJANGO_DEBUG", True)

ALLOWED_HOSTS = [
    h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "").split(",") if h
]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "erp_core",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development and tests, PostgreSQL in production
DB_ENGINE = os.environ.get("DB_ENGINE", "django.db.backends.sqlite3")

if DB_ENGINE.endswith("sqlite3"):
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.environ.get("DB_NAME", BASE_DIR / "db.sqlite3"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.environ.get("DB_NAME", "tuft_erp"),
            "USER": os.environ.get("DB_USER", "tuft"),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "localhost"),
            "PORT": os.environ.get("DB_PORT", "5432"),
            # Row locks never wait forever: callers get a conflict and retry
            "OPTIONS": {
                "options": "-c lock_timeout=%d" % int(
                    os.environ.get("ERP_LOCK_TIMEOUT_MS", "5000")),
            },
        }
    }

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Celery ────────────────────────────────────────────────────
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]

# ── ERP core ──────────────────────────────────────────────────
# Fail fast instead of waiting for row locks (select_for_update(nowait=True))
ERP_LOCK_NOWAIT = env_bool("ERP_LOCK_NOWAIT", False)
# Debits and credits may differ by at most this much (rounding)
ERP_BALANCE_TOLERANCE = Decimal(os.environ.get("ERP_BALANCE_TOLERANCE", "0.01"))
# Share of the order total required before production can start
ERP_DEFAULT_DEPOSIT_PERCENT = Decimal(os.environ.get("ERP_DEFAULT_DEPOSIT_PERCENT", "30"))
# Hourly rate charged to Direct Labor when a job is completed
ERP_LABOR_RATE = Decimal(os.environ.get("ERP_LABOR_RATE", "15.00"))
# Overhead allocated in cost snapshots, as a share of material cost
ERP_OVERHEAD_RATE = Decimal(os.environ.get("ERP_OVERHEAD_RATE", "0.20"))

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "erp_core": {
            "handlers": ["console"],
            "level": os.environ.get("ERP_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
