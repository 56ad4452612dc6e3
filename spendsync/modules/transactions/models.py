"""Models for extracted transactions, statements and merchant rules."""

from typing import Optional

from sqlalchemy import JSON, Boolean, Float, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from spendsync.core.db.base import BaseModel


class Transaction(BaseModel):
    """A transaction extracted from an alert email; id is derived from dedupe_hash."""

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "dedupe_hash", name="uq_transactions_user_dedupe_hash"),
    )

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    dedupe_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="sha256 of the normalized transaction fields",
    )

    source_email_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        comment="raw_emails.id the transaction was extracted from",
    )

    statement_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    merchant: Mapped[str] = mapped_column(String, nullable=False, index=True)
    merchant_raw: Mapped[str] = mapped_column(String, nullable=False)

    vpa: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
        comment="UPI virtual payment address",
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    transaction_date: Mapped[str] = mapped_column(
        String(24),
        nullable=False,
        index=True,
        comment="ISO-8601 UTC with milliseconds",
    )

    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    transaction_mode: Mapped[str] = mapped_column(String(16), nullable=False)

    extraction_confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    category: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    subcategory: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    categorization_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    requires_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category_metadata: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Display metadata: icon, color, parent",
    )

    card_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    card_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<Transaction(merchant='{self.merchant}', amount={self.amount}, category='{self.category}')>"


class Statement(BaseModel):
    """Card statement summary; at most one per email."""

    __tablename__ = "statements"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    issuer: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[str] = mapped_column(String, nullable=False)
    period_end: Mapped[str] = mapped_column(String, nullable=False)
    total_due: Mapped[float] = mapped_column(Float, nullable=False)
    source_email_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Statement(issuer='{self.issuer}', period='{self.period_start} - {self.period_end}')>"


class MerchantCategoryRule(BaseModel):
    """A user's explicit merchant to category mapping."""

    __tablename__ = "merchant_category_rules"
    __table_args__ = (
        UniqueConstraint("user_id", "merchant", name="uq_merchant_rules_user_merchant"),
    )

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    merchant: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<MerchantCategoryRule(merchant='{self.merchant}', category='{self.category}')>"
