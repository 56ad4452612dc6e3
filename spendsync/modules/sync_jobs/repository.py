"""Sync job store."""

import logging
from typing import Any, Optional

from sqlalchemy import select, update

from spendsync.core.db.base import new_uuid
from spendsync.core.exceptions import SyncJobNotFoundError
from spendsync.modules.sync_jobs.dto import SyncJobDTO
from spendsync.modules.sync_jobs.models import SyncJob, SyncJobStatus
from spendsync.utils.datetime import utc_now

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = frozenset({"processed_emails", "new_emails", "transactions", "statements"})


class SyncJobRepository:
    def __init__(self, db_session_factory):
        self.db_session_factory = db_session_factory

    async def create(self, user_id: str, category: str, query: str) -> SyncJobDTO:
        job = SyncJob(
            id=new_uuid(),
            user_id=user_id,
            category=category,
            query=query,
            status=SyncJobStatus.PENDING.value,
            processed_emails=0,
            new_emails=0,
            transactions=0,
            statements=0,
            created_at=utc_now(),
        )
        async with self.db_session_factory() as db:
            db.add(job)
            await db.commit()
            await db.refresh(job)
        return SyncJobDTO.model_validate(job)

    async def find_by_id(self, job_id: str) -> Optional[SyncJobDTO]:
        async with self.db_session_factory() as db:
            job = await db.get(SyncJob, job_id)
        return SyncJobDTO.model_validate(job) if job else None

    async def find_by_user_id(
        self, user_id: str, limit: int = 10, category: Optional[str] = None
    ) -> list[SyncJobDTO]:
        query = select(SyncJob).where(SyncJob.user_id == user_id)
        if category:
            query = query.where(SyncJob.category == category)
        query = query.order_by(SyncJob.created_at.desc(), SyncJob.id).limit(limit)

        async with self.db_session_factory() as db:
            result = await db.execute(query)
            rows = result.scalars().all()
        return [SyncJobDTO.model_validate(row) for row in rows]

    async def find_last_completed_by_user_id(
        self,
        user_id: str,
        category: Optional[str] = None,
        exclude_query: Optional[str] = None,
    ) -> Optional[SyncJobDTO]:
        query = select(SyncJob).where(
            SyncJob.user_id == user_id,
            SyncJob.status == SyncJobStatus.COMPLETED.value,
            SyncJob.completed_at.isnot(None),
        )
        if category:
            query = query.where(SyncJob.category == category)
        if exclude_query:
            query = query.where(SyncJob.query != exclude_query)
        query = query.order_by(SyncJob.completed_at.desc()).limit(1)

        async with self.db_session_factory() as db:
            result = await db.execute(query)
            row = result.scalar_one_or_none()
        return SyncJobDTO.model_validate(row) if row else None

    async def update(self, job_id: str, **fields: Any) -> None:
        """Set fields on a job in a single statement."""
        if isinstance(fields.get("status"), SyncJobStatus):
            fields["status"] = fields["status"].value

        table = SyncJob.__table__
        async with self.db_session_factory() as db:
            result = await db.execute(
                update(table).where(table.c.id == job_id).values(**fields)
            )
            await db.commit()
        if result.rowcount == 0:
            raise SyncJobNotFoundError(job_id)

    async def increment_progress(self, job_id: str, field: str, amount: int = 1) -> None:
        """
        Atomically add to a progress counter.

        The increment is evaluated by the database (SET x = x + n), so
        concurrent writers never lose updates.
        """
        if field not in PROGRESS_FIELDS:
            raise ValueError(f"Unknown progress field: {field}")
        if amount <= 0:
            return

        table = SyncJob.__table__
        column = table.c[field]
        async with self.db_session_factory() as db:
            result = await db.execute(
                update(table)
                .where(table.c.id == job_id)
                .values({column: column + amount})
            )
            await db.commit()
        if result.rowcount == 0:
            raise SyncJobNotFoundError(job_id)
