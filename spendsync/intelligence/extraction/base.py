"""
Extractor contract and the confidence-weighted acceptance rule.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.intelligence.extraction.identity import (
    build_statement_hash,
    build_transaction_hash,
    derive_id,
    normalize_merchant,
)
from spendsync.intelligence.extraction.utils import build_search_text
from spendsync.modules.transactions.dto import StatementDTO, TransactionDTO
from spendsync.utils.datetime import to_iso_millis

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7

FIELD_WEIGHTS = {
    "amount": 0.35,
    "transaction_type": 0.2,
    "transaction_mode": 0.2,
    "payee": 0.15,
    "date": 0.1,
}

UNKNOWN_MERCHANT = "Unknown Merchant"


@dataclass
class ExtractedFields:
    """Raw field values recovered from an email's text."""

    amount: Optional[float] = None
    transaction_type: Optional[str] = None
    transaction_mode: Optional[str] = None
    payee: Optional[str] = None
    vpa: Optional[str] = None
    card_last4: Optional[str] = None
    transaction_date: Optional[datetime] = None


def compute_confidence(fields: ExtractedFields) -> float:
    """Weighted sum over the independently detected fields, in [0, 1]."""
    detected = {
        "amount": fields.amount is not None and fields.amount > 0,
        "transaction_type": fields.transaction_type is not None,
        "transaction_mode": fields.transaction_mode is not None,
        "payee": bool(fields.payee),
        "date": fields.transaction_date is not None,
    }
    score = sum(FIELD_WEIGHTS[name] for name, present in detected.items() if present)
    return round(min(max(score, 0.0), 1.0), 4)


def fallback_merchant(card_last4: Optional[str]) -> str:
    if card_last4:
        return f"Card ••{card_last4} Transaction"
    return UNKNOWN_MERCHANT


class BaseExtractor(ABC):
    """
    Base class for bank alert extractors.

    Subclasses recognise their bank's emails and pull raw fields out of the
    search text; this class applies the acceptance rule and builds the
    identity-bearing transaction.
    """

    name: str = "base"
    issuer: str = ""
    currency: str = "INR"

    def __init__(self, confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD):
        self.confidence_threshold = confidence_threshold

    @abstractmethod
    def can_parse(self, email: RawEmailDTO) -> bool:
        """Whether this extractor recognises the email."""

    @abstractmethod
    def extract_fields(self, text: str) -> ExtractedFields:
        """Pull raw field values out of the search text."""

    def extract_statement(self, email: RawEmailDTO) -> Optional[StatementDTO]:
        return None

    def is_acceptable(self, fields: ExtractedFields, confidence: float) -> bool:
        return (
            confidence >= self.confidence_threshold
            and fields.amount is not None
            and fields.amount > 0
            and fields.transaction_type is not None
            and fields.transaction_mode is not None
        )

    def extract_transactions(self, email: RawEmailDTO) -> list[TransactionDTO]:
        text = build_search_text(email)
        fields = self.extract_fields(text)
        confidence = compute_confidence(fields)

        if not self.is_acceptable(fields, confidence):
            logger.debug(
                f"{self.name}: rejected email {email.provider_message_id} "
                f"(confidence={confidence}, amount={fields.amount}, "
                f"type={fields.transaction_type}, mode={fields.transaction_mode})"
            )
            return []

        return [self.build_transaction(email, fields, confidence)]

    def build_transaction(
        self, email: RawEmailDTO, fields: ExtractedFields, confidence: float
    ) -> TransactionDTO:
        merchant = normalize_merchant(fields.payee or "") or fallback_merchant(fields.card_last4)
        transaction_date = to_iso_millis(fields.transaction_date or email.received_at)
        source_email_id = email.id or email.provider_message_id

        dedupe_hash = build_transaction_hash(
            user_id=email.user_id,
            source_email_id=source_email_id,
            merchant_raw=merchant,
            amount=fields.amount,
            currency=self.currency,
            transaction_date=transaction_date,
            transaction_type=fields.transaction_type,
            transaction_mode=fields.transaction_mode,
        )

        return TransactionDTO(
            id=derive_id(dedupe_hash),
            user_id=email.user_id,
            dedupe_hash=dedupe_hash,
            source_email_id=source_email_id,
            merchant=merchant,
            merchant_raw=merchant,
            vpa=fields.vpa,
            amount=round(fields.amount, 2),
            currency=self.currency,
            transaction_date=transaction_date,
            transaction_type=fields.transaction_type,
            transaction_mode=fields.transaction_mode,
            extraction_confidence=confidence,
            card_last4=fields.card_last4,
        )

    def build_statement(
        self,
        email: RawEmailDTO,
        period_start: str,
        period_end: str,
        total_due: float,
    ) -> StatementDTO:
        source_email_id = email.id or email.provider_message_id
        return StatementDTO(
            id=derive_id(build_statement_hash(email.user_id, source_email_id, self.issuer)),
            user_id=email.user_id,
            issuer=self.issuer,
            period_start=period_start,
            period_end=period_end,
            total_due=total_due,
            source_email_id=source_email_id,
        )
