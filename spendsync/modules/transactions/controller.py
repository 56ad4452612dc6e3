from datetime import date
from typing import Optional

from fastapi import APIRouter, Query

from spendsync.core.dependencies import TransactionServiceDep, UserIdDep
from spendsync.modules.transactions.dto import (
    AnalyticsPeriod,
    BulkCategorizeRequest,
    BulkCategorizeResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    SpendingSummary,
    StatementDTO,
    TransactionDTO,
    TransactionFilters,
    TransactionMode,
    TransactionPage,
    TransactionUpdate,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionPage)
async def list_transactions(
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    category: Optional[str] = Query(default=None, max_length=100),
    mode: Optional[TransactionMode] = None,
    review: Optional[bool] = Query(default=None, description="true = still needs review"),
    date_from: Optional[date] = Query(default=None, description="Inclusive start date"),
    date_to: Optional[date] = Query(default=None, description="Inclusive end date"),
    search: Optional[str] = Query(default=None, max_length=200),
):
    """API endpoint to fetch extracted transactions, newest first"""
    filters = TransactionFilters(
        category=category,
        mode=mode,
        requires_review=review,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return await transaction_service.list_transactions(
        user_id, limit=limit, offset=offset, filters=filters
    )


@router.get("/merchants", response_model=list[str])
async def list_merchants(
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
):
    """Distinct merchant names, used to pick bulk categorization targets"""
    return await transaction_service.list_merchants(user_id)


@router.get("/statements", response_model=list[StatementDTO])
async def list_statements(
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
):
    """Card statement summaries found while syncing"""
    return await transaction_service.list_statements(user_id)


@router.get("/summary", response_model=SpendingSummary)
async def spending_summary(
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
    period: AnalyticsPeriod = "month",
):
    """Spending totals for the period, by category and by payment mode"""
    return await transaction_service.spending_summary(user_id, period)


@router.post("/bulk-categorize", response_model=BulkCategorizeResponse)
async def bulk_categorize(
    request: BulkCategorizeRequest,
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
) -> BulkCategorizeResponse:
    """Categorize all of a merchant's transactions and remember the rule"""
    return await transaction_service.bulk_categorize_by_merchant(user_id, request)


@router.post("/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update(
    request: BulkUpdateRequest,
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
) -> BulkUpdateResponse:
    """Set category, mode or review state on selected transactions"""
    return await transaction_service.bulk_update_by_ids(user_id, request)


@router.get("/{transaction_id}", response_model=TransactionDTO)
async def get_transaction(
    transaction_id: str,
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
):
    return await transaction_service.get_transaction(user_id, transaction_id)


@router.patch("/{transaction_id}", response_model=TransactionDTO)
async def update_transaction(
    transaction_id: str,
    update_data: TransactionUpdate,
    user_id: UserIdDep,
    transaction_service: TransactionServiceDep,
):
    """API endpoint to correct an extracted transaction"""
    return await transaction_service.update_transaction(user_id, transaction_id, update_data)
