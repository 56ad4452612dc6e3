"""Reading and correcting extracted transactions."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from spendsync.core.exceptions import TransactionNotFoundError, ValidationError
from spendsync.intelligence.categorization.rules import CategorizationRules
from spendsync.modules.transactions.dto import (
    AnalyticsPeriod,
    BulkCategorizeRequest,
    BulkCategorizeResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    MerchantCategoryRuleDTO,
    SpendingBreakdownItem,
    SpendingSummary,
    StatementDTO,
    TransactionDTO,
    TransactionFilters,
    TransactionPage,
    TransactionUpdate,
)
from spendsync.modules.transactions.repository import (
    MerchantRuleRepository,
    StatementRepository,
    TransactionRepository,
)
from spendsync.utils.datetime import to_iso_millis, utc_now

logger = logging.getLogger(__name__)

# calendar months approximated in days
PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 91, "year": 365}


class TransactionService:
    def __init__(
        self,
        transactions: TransactionRepository,
        statements: StatementRepository,
        merchant_rules: MerchantRuleRepository,
        rules: CategorizationRules,
    ):
        self.transactions = transactions
        self.statements = statements
        self.merchant_rules = merchant_rules
        self.rules = rules

    async def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        filters: Optional[TransactionFilters] = None,
    ) -> TransactionPage:
        """Newest first, with the total matching the same filters."""
        data = await self.transactions.list_by_user(
            user_id, limit=limit, offset=offset, filters=filters
        )
        total = await self.transactions.count_by_user(user_id, filters)
        return TransactionPage(
            data=data,
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(data) < total,
        )

    async def get_transaction(self, user_id: str, transaction_id: str) -> TransactionDTO:
        transaction = await self.transactions.find_by_id(user_id, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    async def list_merchants(self, user_id: str) -> list[str]:
        return await self.transactions.list_merchants(user_id)

    async def list_statements(self, user_id: str) -> list[StatementDTO]:
        return await self.statements.list_by_user(user_id)

    async def bulk_categorize_by_merchant(
        self, user_id: str, request: BulkCategorizeRequest
    ) -> BulkCategorizeResponse:
        """
        Recategorize every transaction of a merchant and remember the choice.

        The stored merchant rule feeds the user's exact matches, so later
        syncs categorize the merchant the same way.
        """
        merchant = request.merchant.strip()
        if not merchant:
            raise ValidationError("Merchant is required")

        subcategory = request.subcategory or request.category
        metadata = request.category_metadata or self.rules.metadata_for(request.category)

        updated_count = await self.transactions.update_category_by_merchant(
            user_id,
            merchant,
            {
                "category": request.category,
                "subcategory": subcategory,
                "category_metadata": metadata.model_dump(),
                "categorization_method": "merchant_rule",
                "confidence": 1.0,
                "requires_review": False,
            },
        )
        await self.merchant_rules.upsert(
            MerchantCategoryRuleDTO(
                user_id=user_id,
                merchant=merchant,
                category=request.category,
                subcategory=subcategory,
                category_metadata=metadata,
            )
        )

        logger.info(
            f"Categorized {updated_count} transactions of {merchant!r} as "
            f"{request.category} for user {user_id}"
        )
        return BulkCategorizeResponse(
            merchant=merchant,
            category=request.category,
            subcategory=subcategory,
            updated_count=updated_count,
        )

    async def update_transaction(
        self, user_id: str, transaction_id: str, update: TransactionUpdate
    ) -> TransactionDTO:
        """Apply a manual correction; identity fields never change."""
        values = update.model_dump(exclude_none=True)
        if not values:
            raise ValidationError("No fields to update")

        if "merchant" in values:
            values["merchant"] = values["merchant"].strip()

        if "category" in values:
            category = values["category"]
            values.update(
                subcategory=values.get("subcategory") or category,
                category_metadata=self.rules.metadata_for(category).model_dump(),
                categorization_method="manual",
                confidence=1.0,
                requires_review=False,
            )

        updated = await self.transactions.update_fields(user_id, transaction_id, values)
        if updated is None:
            raise TransactionNotFoundError(transaction_id)
        return updated

    async def bulk_update_by_ids(
        self, user_id: str, request: BulkUpdateRequest
    ) -> BulkUpdateResponse:
        """
        Set the same fields on many transactions.

        A category counts as a manual correction, like a single update.
        Ids that don't exist or belong to another user are skipped.
        """
        values = request.data.model_dump(exclude_none=True)
        if not values:
            raise ValidationError("No fields to update")

        if "category" in values:
            category = values["category"]
            values = {
                "subcategory": category,
                "category_metadata": self.rules.metadata_for(category).model_dump(),
                "categorization_method": "manual",
                "confidence": 1.0,
                "requires_review": False,
                **values,
            }

        ids = list(dict.fromkeys(request.ids))
        updated_count = await self.transactions.update_by_ids(user_id, ids, values)
        logger.info(f"Bulk updated {updated_count}/{len(ids)} transactions for user {user_id}")
        return BulkUpdateResponse(updated_count=updated_count)

    async def spending_summary(
        self,
        user_id: str,
        period: AnalyticsPeriod = "month",
        now: Optional[datetime] = None,
    ) -> SpendingSummary:
        """Debit and credit totals since the start of the period, debits broken down."""
        start = (now or utc_now()) - timedelta(days=PERIOD_DAYS[period])
        since = to_iso_millis(start.replace(hour=0, minute=0, second=0, microsecond=0))

        by_type = await self.transactions.aggregate(user_id, since, "transaction_type")
        by_category = await self.transactions.aggregate(
            user_id, since, "category", transaction_type="debited"
        )
        by_mode = await self.transactions.aggregate(
            user_id, since, "transaction_mode", transaction_type="debited"
        )
        totals = {key: (amount, count) for key, amount, count in by_type}

        return SpendingSummary(
            period=period,
            since=since,
            total_debited=round(totals.get("debited", (0.0, 0))[0], 2),
            total_credited=round(totals.get("credited", (0.0, 0))[0], 2),
            transaction_count=sum(count for _, count in totals.values()),
            by_category=_breakdown(by_category),
            by_mode=_breakdown(by_mode),
        )


def _breakdown(rows) -> list[SpendingBreakdownItem]:
    return [
        SpendingBreakdownItem(key=key, total=round(amount, 2), count=count)
        for key, amount, count in rows
    ]
