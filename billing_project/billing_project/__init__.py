# Celery instance is defined in billing_project/celery.py
# It points the worker at the Django settings of this project
from .celery import celery_app

__all__ = ("celery_app",)

""" Run the worker with "celery -A billing_project worker -l info".
    -A billing_project imports this package, which exposes celery_app. """
