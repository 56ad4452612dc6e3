"""Models for mailbox sync jobs."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from spendsync.core.db.base import BaseModel


class SyncJobStatus(str, enum.Enum):
    """Sync job status; transitions only move forward."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (SyncJobStatus.COMPLETED, SyncJobStatus.FAILED)


class SyncJob(BaseModel):
    """Progress record for one mailbox sync, polled by callers."""

    __tablename__ = "sync_jobs"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=SyncJobStatus.PENDING.value,
        server_default=SyncJobStatus.PENDING.value,
        index=True,
    )

    category: Mapped[str] = mapped_column(String(32), nullable=False, default="expenses")
    query: Mapped[str] = mapped_column(Text, nullable=False, default="")

    total_emails: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Set once the message reference list is known",
    )
    processed_emails: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    new_emails: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    statements: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    def __repr__(self) -> str:
        return f"<SyncJob(id='{self.id}', status='{self.status}', processed={self.processed_emails}/{self.total_emails})>"
