from celery import Celery
from celery.schedules import crontab

from folio.core.config import settings

app = Celery("folio", include=["folio.tasks.performance"])
app.conf.broker_url = settings.CELERY_BROKER_URL
app.conf.result_backend = settings.CELERY_RESULT_BACKEND
app.conf.timezone = settings.CELERY_TIMEZONE
app.conf.enable_utc = False

app.conf.beat_schedule = {
    "warm-performance-metrics": {
        "task": "folio.tasks.performance.warm_performance_metrics",
        "schedule": crontab(minute=settings.PERFORMANCE_WARM_MINUTE),
    },
}
