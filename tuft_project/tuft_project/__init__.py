# Celery instance is defined in tuft_project/celery.py
# It points the worker at the Django settings of this project
from .celery import celery_app

# 'from tuft_project import *', only exports celery_app
__all__ = ("celery_app",)

""" When you run Celery workers, "celery -A tuft_project worker -l info"
    imports tuft_project/__init__.py, which exposes celery_app. """
