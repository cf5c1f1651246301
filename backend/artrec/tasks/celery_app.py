"""Celery application configuration and beat schedule."""

from celery import Celery
from celery.schedules import crontab

from artrec.config import get_settings

settings = get_settings()

celery_app = Celery(
    "artrec",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "artrec.tasks.recommendation_tasks",
        "artrec.tasks.analysis_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.beat_timezone,
    task_track_started=True,
    task_time_limit=1800,
    task_soft_time_limit=1740,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "cleanup-expired-recommendations": {
        "task": "artrec.tasks.recommendation_tasks.cleanup_expired_recommendations",
        "schedule": crontab(minute=0, hour=settings.cleanup_hour),
    },
    "analyze-artworks": {
        "task": "artrec.tasks.analysis_tasks.analyze_artworks",
        "schedule": crontab(minute=0, hour=settings.artwork_analysis_hour),
    },
    "analyze-users": {
        "task": "artrec.tasks.analysis_tasks.analyze_users",
        "schedule": crontab(minute=0, hour=settings.user_analysis_hour),
    },
    "compute-recommendations": {
        "task": "artrec.tasks.recommendation_tasks.compute_recommendations",
        "schedule": crontab(minute=0, hour=settings.recommendation_batch_hour),
    },
    "rebuild-snapshot": {
        "task": "artrec.tasks.analysis_tasks.rebuild_snapshot",
        "schedule": crontab(minute=0, hour=settings.snapshot_rebuild_hour),
    },
}
