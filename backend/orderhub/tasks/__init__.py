"""
Celery tasks module
"""
from orderhub.core.celery_app import celery_app
from orderhub.tasks import event_maintenance

__all__ = ["celery_app", "event_maintenance"]
