from celery import Celery
from spendsync.core.config import config

celery_app = Celery(
    "email_sync_worker",
    broker=config.redis_url,
    backend=config.redis_url,
    include=["spendsync.modules.sync_jobs.tasks"],
)

# A sync can run for minutes; only ack once it has finished
celery_app.conf.task_acks_late = True
celery_app.conf.worker_prefetch_multiplier = 1
