from __future__ import annotations
import os
from celery import Celery
from celery.schedules import crontab

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tuft_project.settings")

# name should match your project package
celery_app = Celery("tuft_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps
celery_app.autodiscover_tasks()

# Nightly check that cached balances still match the posted history
celery_app.conf.beat_schedule = {
    "reconcile-ledger-nightly": {
        "task": "erp_core.tasks.reconcile_ledger",
        "schedule": crontab(hour=2, minute=30),
        "kwargs": {"repair": False},
    },
}
