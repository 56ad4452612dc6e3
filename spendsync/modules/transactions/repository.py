"""Transaction, statement and merchant rule stores."""

import logging
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import func, select, update

from spendsync.core.db.base import new_uuid
from spendsync.core.db.dialect import dialect_insert
from spendsync.modules.transactions.dto import (
    MerchantCategoryRuleDTO,
    StatementDTO,
    TransactionDTO,
    TransactionFilters,
)
from spendsync.modules.transactions.models import (
    MerchantCategoryRule,
    Statement,
    Transaction,
)

logger = logging.getLogger(__name__)

GROUPABLE_COLUMNS = ("category", "transaction_mode", "transaction_type")


def _day_start(day: date) -> str:
    return f"{day.isoformat()}T00:00:00.000Z"


def _apply_filters(query, user_id: str, filters: Optional[TransactionFilters]):
    # transaction_date is stored as fixed-width ISO text, so string bounds order correctly
    query = query.where(Transaction.user_id == user_id)
    if filters is None:
        return query

    if filters.category:
        query = query.where(Transaction.category == filters.category)
    if filters.mode:
        query = query.where(Transaction.transaction_mode == filters.mode)
    if filters.requires_review is not None:
        query = query.where(Transaction.requires_review == filters.requires_review)
    if filters.date_from:
        query = query.where(Transaction.transaction_date >= _day_start(filters.date_from))
    if filters.date_to:
        query = query.where(
            Transaction.transaction_date < _day_start(filters.date_to + timedelta(days=1))
        )
    if filters.search and filters.search.strip():
        query = query.where(Transaction.merchant.icontains(filters.search.strip(), autoescape=True))
    return query


class TransactionRepository:
    def __init__(self, db_session_factory):
        self.db_session_factory = db_session_factory

    async def upsert_many(self, transactions: list[TransactionDTO]) -> int:
        """
        Insert transactions, ignoring ones that already exist.

        Returns:
            Number of rows actually inserted
        """
        if not transactions:
            return 0

        table = Transaction.__table__
        rows = [transaction.model_dump(mode="json") for transaction in transactions]

        async with self.db_session_factory() as db:
            stmt = (
                dialect_insert(db, table)
                .values(rows)
                .on_conflict_do_nothing()
                .returning(table.c.id)
            )
            inserted = len((await db.execute(stmt)).all())
            await db.commit()

        if inserted < len(rows):
            logger.debug(f"Skipped {len(rows) - inserted} duplicate transactions")
        return inserted

    async def find_by_id(self, user_id: str, transaction_id: str) -> Optional[TransactionDTO]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(Transaction).where(
                    Transaction.user_id == user_id, Transaction.id == transaction_id
                )
            )
            row = result.scalar_one_or_none()
        return TransactionDTO.model_validate(row) if row else None

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        filters: Optional[TransactionFilters] = None,
    ) -> list[TransactionDTO]:
        query = _apply_filters(select(Transaction), user_id, filters)
        query = (
            query.order_by(Transaction.transaction_date.desc(), Transaction.id)
            .offset(offset)
            .limit(limit)
        )

        async with self.db_session_factory() as db:
            result = await db.execute(query)
            rows = result.scalars().all()
        return [TransactionDTO.model_validate(row) for row in rows]

    async def count_by_user(
        self, user_id: str, filters: Optional[TransactionFilters] = None
    ) -> int:
        query = _apply_filters(select(func.count()).select_from(Transaction), user_id, filters)
        async with self.db_session_factory() as db:
            return (await db.execute(query)).scalar_one()

    async def list_merchants(self, user_id: str) -> list[str]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(Transaction.merchant)
                .where(Transaction.user_id == user_id)
                .distinct()
                .order_by(Transaction.merchant)
            )
            return list(result.scalars().all())

    async def find_manual_overrides(self, user_id: str) -> dict[str, str]:
        """Transaction id -> category for every manually corrected transaction."""
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(Transaction.id, Transaction.category).where(
                    Transaction.user_id == user_id,
                    Transaction.categorization_method == "manual",
                    Transaction.category.isnot(None),
                )
            )
            return {row.id: row.category for row in result.all()}

    async def update_fields(
        self, user_id: str, transaction_id: str, values: dict[str, Any]
    ) -> Optional[TransactionDTO]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                update(Transaction.__table__)
                .where(
                    Transaction.__table__.c.user_id == user_id,
                    Transaction.__table__.c.id == transaction_id,
                )
                .values(**values)
            )
            await db.commit()
        if result.rowcount == 0:
            return None
        return await self.find_by_id(user_id, transaction_id)

    async def update_category_by_merchant(
        self, user_id: str, merchant: str, values: dict[str, Any]
    ) -> int:
        table = Transaction.__table__
        async with self.db_session_factory() as db:
            result = await db.execute(
                update(table)
                .where(table.c.user_id == user_id, table.c.merchant == merchant)
                .values(**values)
            )
            await db.commit()
        return result.rowcount

    async def update_by_ids(
        self, user_id: str, transaction_ids: list[str], values: dict[str, Any]
    ) -> int:
        """Update the user's transactions among the given ids; others are ignored."""
        table = Transaction.__table__
        async with self.db_session_factory() as db:
            result = await db.execute(
                update(table)
                .where(table.c.user_id == user_id, table.c.id.in_(transaction_ids))
                .values(**values)
            )
            await db.commit()
        return result.rowcount

    async def aggregate(
        self,
        user_id: str,
        since: str,
        group_by: str,
        transaction_type: Optional[str] = None,
    ) -> list[tuple[Optional[str], float, int]]:
        """
        Sum and count of amounts per value of one column, largest total first.

        Args:
            since: Inclusive lower bound on transaction_date (ISO text)
            group_by: One of GROUPABLE_COLUMNS
            transaction_type: Only rows of this type when set
        """
        if group_by not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group transactions by {group_by!r}")

        column = getattr(Transaction, group_by)
        total = func.sum(Transaction.amount)
        query = select(column, total, func.count()).where(
            Transaction.user_id == user_id, Transaction.transaction_date >= since
        )
        if transaction_type:
            query = query.where(Transaction.transaction_type == transaction_type)
        query = query.group_by(column).order_by(total.desc(), column)

        async with self.db_session_factory() as db:
            result = await db.execute(query)
            return [(key, float(amount or 0), count) for key, amount, count in result.all()]


class StatementRepository:
    def __init__(self, db_session_factory):
        self.db_session_factory = db_session_factory

    async def upsert(self, statement: StatementDTO) -> bool:
        """Insert the statement; returns False if it was already stored."""
        table = Statement.__table__
        async with self.db_session_factory() as db:
            stmt = (
                dialect_insert(db, table)
                .values(**statement.model_dump())
                .on_conflict_do_nothing()
                .returning(table.c.id)
            )
            inserted_id = (await db.execute(stmt)).scalar_one_or_none()
            await db.commit()
        return inserted_id is not None

    async def list_by_user(self, user_id: str) -> list[StatementDTO]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(Statement)
                .where(Statement.user_id == user_id)
                .order_by(Statement.created_at.desc())
            )
            rows = result.scalars().all()
        return [StatementDTO.model_validate(row) for row in rows]


class MerchantRuleRepository:
    def __init__(self, db_session_factory):
        self.db_session_factory = db_session_factory

    async def upsert(self, rule: MerchantCategoryRuleDTO) -> None:
        table = MerchantCategoryRule.__table__
        values = rule.model_dump(mode="json")

        async with self.db_session_factory() as db:
            stmt = dialect_insert(db, table).values(id=new_uuid(), **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "merchant"],
                set_={
                    "category": stmt.excluded.category,
                    "subcategory": stmt.excluded.subcategory,
                    "category_metadata": stmt.excluded.category_metadata,
                    "updated_at": func.now(),
                },
            )
            await db.execute(stmt)
            await db.commit()

    async def list_by_user(self, user_id: str) -> list[MerchantCategoryRuleDTO]:
        async with self.db_session_factory() as db:
            result = await db.execute(
                select(MerchantCategoryRule)
                .where(MerchantCategoryRule.user_id == user_id)
                .order_by(MerchantCategoryRule.merchant)
            )
            rows = result.scalars().all()
        return [MerchantCategoryRuleDTO.model_validate(row) for row in rows]
