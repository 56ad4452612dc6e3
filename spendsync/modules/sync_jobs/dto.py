from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from spendsync.modules.sync_jobs.models import SyncJobStatus


class SyncJobDTO(BaseModel):
    """Observable state of a sync job."""

    id: str
    user_id: str
    status: SyncJobStatus
    category: str = "expenses"
    query: str = ""
    total_emails: Optional[int] = None
    processed_emails: int = 0
    new_emails: int = 0
    transactions: int = 0
    statements: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": "0b7c3a52-7f6e-4e8a-9a43-2f1d7d3f1e11",
                "user_id": "user-1",
                "status": "processing",
                "category": "expenses",
                "query": "subject:(statement OR transaction) newer_than:180d",
                "total_emails": 240,
                "processed_emails": 100,
                "new_emails": 37,
                "transactions": 31,
                "statements": 1,
            }
        }


class StartSyncRequest(BaseModel):
    category: str = Field(default="expenses", description="Sync category")
    query: Optional[str] = Field(
        default=None,
        description="Mailbox search query; incremental from the last completed sync when omitted",
    )
    max_results: Optional[int] = Field(default=None, ge=1, le=5000)


class StartSyncResponse(BaseModel):
    job_id: str
