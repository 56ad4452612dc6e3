from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field

TransactionType = Literal["debited", "credited"]
TransactionMode = Literal["upi", "credit_card", "neft", "imps", "rtgs"]
CategorizationMethod = Literal["manual", "merchant_rule", "vpa_rule", "neft_rule", "default"]
AnalyticsPeriod = Literal["week", "month", "quarter", "year"]


class CategoryMetadata(BaseModel):
    icon: str = "question-circle"
    color: str = "#BDC3C7"
    parent: Optional[str] = None


class TransactionDTO(BaseModel):
    """A transaction extracted from an email, before or after categorization."""

    id: str = Field(..., description="UUID derived from the dedupe hash")
    user_id: str
    dedupe_hash: str = Field(..., description="sha256 of the normalized transaction fields")
    source_email_id: str = Field(..., description="Stored raw email the transaction came from")
    statement_id: Optional[str] = None
    merchant: str
    merchant_raw: str
    vpa: Optional[str] = Field(default=None, description="UPI virtual payment address")
    amount: float
    currency: str = "INR"
    transaction_date: str = Field(..., description="ISO-8601 UTC, millisecond precision")
    transaction_type: TransactionType
    transaction_mode: TransactionMode
    extraction_confidence: float = Field(default=0.0, ge=0, le=1)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0, le=1, description="Categorization confidence")
    categorization_method: Optional[CategorizationMethod] = None
    requires_review: bool = True
    category_metadata: Optional[CategoryMetadata] = None
    card_last4: Optional[str] = None
    card_name: Optional[str] = None

    class Config:
        from_attributes = True


class StatementDTO(BaseModel):
    id: str
    user_id: str
    issuer: str
    period_start: str
    period_end: str
    total_due: float
    source_email_id: str

    class Config:
        from_attributes = True


class TransactionUpdate(BaseModel):
    """Manual correction of an extracted transaction."""

    amount: Optional[float] = Field(default=None, gt=0)
    merchant: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    subcategory: Optional[str] = None


class BulkCategorizeRequest(BaseModel):
    merchant: str = Field(..., min_length=1, description="Merchant name as shown on transactions")
    category: str = Field(..., min_length=1)
    subcategory: Optional[str] = None
    category_metadata: Optional[CategoryMetadata] = None

    class Config:
        json_schema_extra = {
            "example": {
                "merchant": "GREEN CHOICE FRUITS AND VEGETABLES",
                "category": "groceries",
            }
        }


class BulkCategorizeResponse(BaseModel):
    merchant: str
    category: str
    subcategory: Optional[str] = None
    updated_count: int


class MerchantCategoryRuleDTO(BaseModel):
    user_id: str
    merchant: str
    category: str
    subcategory: Optional[str] = None
    category_metadata: Optional[CategoryMetadata] = None

    class Config:
        from_attributes = True


class TransactionFilters(BaseModel):
    """Optional filters for listing; date bounds are inclusive calendar days (UTC)."""

    category: Optional[str] = None
    mode: Optional[TransactionMode] = None
    requires_review: Optional[bool] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = Field(default=None, description="Case-insensitive merchant substring")


class TransactionPage(BaseModel):
    data: list[TransactionDTO]
    total: int
    limit: int
    offset: int
    has_more: bool


class BulkUpdateFields(BaseModel):
    """Fields that may be set on many transactions at once; never amount or merchant."""

    category: Optional[str] = Field(default=None, min_length=1)
    subcategory: Optional[str] = None
    transaction_mode: Optional[TransactionMode] = None
    requires_review: Optional[bool] = None


class BulkUpdateRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1, description="Transaction IDs to update")
    data: BulkUpdateFields

    class Config:
        json_schema_extra = {
            "example": {
                "ids": ["6f1c0a52-3b1e-5d8e-9a40-1f2b3c4d5e6f"],
                "data": {"category": "groceries", "requires_review": False},
            }
        }


class BulkUpdateResponse(BaseModel):
    updated_count: int


class SpendingBreakdownItem(BaseModel):
    key: Optional[str] = Field(default=None, description="Category or transaction mode")
    total: float
    count: int


class SpendingSummary(BaseModel):
    period: AnalyticsPeriod
    since: str = Field(..., description="Start of the period, ISO-8601 UTC")
    total_debited: float
    total_credited: float
    transaction_count: int
    by_category: list[SpendingBreakdownItem]
    by_mode: list[SpendingBreakdownItem]
