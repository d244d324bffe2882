from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "knowledge_hub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.leaderboard"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)
celery_app.conf.beat_schedule = {
    "snapshot-leaderboards": {
        "task": "app.tasks.leaderboard.snapshot_leaderboards",
        "schedule": crontab(minute=0),
    },
}
