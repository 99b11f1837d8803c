from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "marketplace_admin",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.mycelery.worker"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    # broker outages must not stall request handlers
    broker_connection_retry_on_startup=False,
    broker_transport_options={"max_retries": 1},
)
