"""
Celery application: broker and result backend from settings.
Tasks are in tanishuv.workers.tasks (payment reconciliation).
"""
from celery import Celery
from celery.schedules import crontab

from tanishuv.core.config import settings

celery_app = Celery(
    "tanishuv",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "tanishuv.workers.tasks.reconcile_payments",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "expire-stale-pending-purchases": {
            "task": "tanishuv.workers.tasks.reconcile_payments.expire_stale_pending_purchases",
            "schedule": crontab(minute="*/30"),
        },
        "expire-subscriptions": {
            "task": "tanishuv.workers.tasks.reconcile_payments.expire_subscriptions",
            "schedule": crontab(minute="*/15"),
        },
    },
)
