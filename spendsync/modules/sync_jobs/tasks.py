import asyncio
import logging
from typing import Optional

from spendsync.core.celery_worker import celery_app
from spendsync.core.config import config
from spendsync.core.db.engine import build_engine, build_session_factory
from spendsync.core.dependencies import build_email_sync_service
from spendsync.modules.sync_jobs.dto import SyncJobDTO

logger = logging.getLogger(__name__)


@celery_app.task(name="sync_jobs.run_email_sync")
def run_email_sync(
    user_id: str,
    category: str = "expenses",
    query: Optional[str] = None,
    max_results: Optional[int] = None,
) -> dict:
    """Run one mailbox sync to completion inside a worker process."""
    logger.info(f"Starting email sync task for user {user_id}")
    try:
        job = asyncio.run(_run_sync(user_id, category, query, max_results))
    except Exception as e:
        logger.error(f"Email sync task for user {user_id} failed: {e}")
        raise

    logger.info(f"Email sync task finished: job {job.id} {job.status.value}")
    return job.model_dump(mode="json")


async def _run_sync(
    user_id: str,
    category: str,
    query: Optional[str],
    max_results: Optional[int],
) -> SyncJobDTO:
    # Each asyncio.run gets a fresh loop, so pooled connections can't be reused
    engine = build_engine(config.db_url, use_pool=False)
    try:
        service = build_email_sync_service(build_session_factory(engine))
        job = await service.create_job(user_id, category, query)
        await service.run_job(job.id, max_results=max_results)
        return await service.get_status(job.id)
    finally:
        await engine.dispose()
