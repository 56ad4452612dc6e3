from typing import Optional

from fastapi import APIRouter, Query

from spendsync.core.dependencies import EmailSyncServiceDep, UserIdDep
from spendsync.core.exceptions import SyncJobNotFoundError
from spendsync.modules.sync_jobs.dto import (
    StartSyncRequest,
    StartSyncResponse,
    SyncJobDTO,
)

router = APIRouter(prefix="/sync-jobs", tags=["sync-jobs"])


@router.post("", response_model=StartSyncResponse, status_code=202)
async def start_sync(
    user_id: UserIdDep,
    sync_service: EmailSyncServiceDep,
    request: Optional[StartSyncRequest] = None,
) -> StartSyncResponse:
    """Start a mailbox sync; returns immediately with the job id"""
    request = request or StartSyncRequest()
    job_id = await sync_service.start_sync(
        user_id,
        category=request.category,
        query=request.query,
        max_results=request.max_results,
    )
    return StartSyncResponse(job_id=job_id)


@router.post("/reprocess", response_model=StartSyncResponse, status_code=202)
async def start_reprocess(
    user_id: UserIdDep,
    sync_service: EmailSyncServiceDep,
    category: str = Query(default="expenses"),
) -> StartSyncResponse:
    """Re-run extraction and categorization over already stored emails"""
    job_id = await sync_service.start_reprocess(user_id, category=category)
    return StartSyncResponse(job_id=job_id)


@router.get("", response_model=list[SyncJobDTO])
async def list_sync_jobs(
    user_id: UserIdDep,
    sync_service: EmailSyncServiceDep,
    limit: int = Query(default=10, ge=1, le=100),
    category: Optional[str] = None,
):
    """Most recent sync jobs for the user, newest first"""
    return await sync_service.list_recent_jobs(user_id, limit=limit, category=category)


@router.get("/{job_id}", response_model=SyncJobDTO)
async def get_sync_job(
    job_id: str,
    user_id: UserIdDep,
    sync_service: EmailSyncServiceDep,
):
    """Poll a sync job's status and progress counters"""
    job = await sync_service.get_status(job_id)
    # other users' jobs are reported as missing
    if job is None or job.user_id != user_id:
        raise SyncJobNotFoundError(job_id)
    return job
