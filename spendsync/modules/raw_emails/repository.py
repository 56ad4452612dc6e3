"""Raw email store."""

import logging
from typing import Optional

from sqlalchemy import func, select, update

from spendsync.core.db.base import new_uuid
from spendsync.core.db.dialect import dialect_insert
from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.modules.raw_emails.dto import UpsertResult
from spendsync.modules.raw_emails.models import RawEmail

logger = logging.getLogger(__name__)

CONTENT_FIELDS = (
    "from_email",
    "subject",
    "snippet",
    "received_at",
    "body_text",
    "body_html",
    "headers",
    "category",
)


class RawEmailRepository:
    def __init__(self, db_session_factory):
        """
        Args:
            db_session_factory: Factory returning async database sessions
        """
        self.db_session_factory = db_session_factory

    async def upsert(self, email: RawEmailDTO) -> UpsertResult:
        """
        Insert the email or refresh its content fields.

        Identity fields (user, provider, provider message id and the stored
        id) are never changed by a re-sync.
        """
        content = {field: getattr(email, field) for field in CONTENT_FIELDS}
        table = RawEmail.__table__

        async with self.db_session_factory() as db:
            insert_stmt = (
                dialect_insert(db, table)
                .values(
                    id=email.id or new_uuid(),
                    user_id=email.user_id,
                    provider=email.provider,
                    provider_message_id=email.provider_message_id,
                    **content,
                )
                .on_conflict_do_nothing(
                    index_elements=["user_id", "provider", "provider_message_id"]
                )
                .returning(table.c.id)
            )
            inserted_id = (await db.execute(insert_stmt)).scalar_one_or_none()

            if inserted_id is not None:
                await db.commit()
                return UpsertResult(is_new=True, id=inserted_id)

            update_stmt = (
                update(table)
                .where(
                    table.c.user_id == email.user_id,
                    table.c.provider == email.provider,
                    table.c.provider_message_id == email.provider_message_id,
                )
                .values(**content)
                .returning(table.c.id)
            )
            existing_id = (await db.execute(update_stmt)).scalar_one()
            await db.commit()

        logger.debug(f"Refreshed raw email {email.provider_message_id} for user {email.user_id}")
        return UpsertResult(is_new=False, id=existing_id)

    async def find_by_id(self, user_id: str, email_id: str) -> Optional[RawEmailDTO]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(RawEmail).where(RawEmail.user_id == user_id, RawEmail.id == email_id)
            )
            row = result.scalar_one_or_none()
        return RawEmailDTO.model_validate(row) if row else None

    async def find_by_provider_message_id(
        self, user_id: str, provider: str, provider_message_id: str
    ) -> Optional[RawEmailDTO]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(RawEmail).where(
                    RawEmail.user_id == user_id,
                    RawEmail.provider == provider,
                    RawEmail.provider_message_id == provider_message_id,
                )
            )
            row = result.scalar_one_or_none()
        return RawEmailDTO.model_validate(row) if row else None

    async def list_by_user(
        self,
        user_id: str,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[RawEmailDTO]:
        query = select(RawEmail).where(RawEmail.user_id == user_id)
        if category:
            query = query.where(RawEmail.category == category)
        query = query.order_by(RawEmail.received_at.desc(), RawEmail.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        async with self.db_session_factory() as db:
            result = await db.execute(query)
            rows = result.scalars().all()
        return [RawEmailDTO.model_validate(row) for row in rows]

    async def count_by_user(self, user_id: str, category: Optional[str] = None) -> int:
        query = select(func.count()).select_from(RawEmail).where(RawEmail.user_id == user_id)
        if category:
            query = query.where(RawEmail.category == category)
        async with self.db_session_factory() as db:
            return (await db.execute(query)).scalar_one()
