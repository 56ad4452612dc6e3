"""Chase card alert and statement extractor (labelled key/value emails)."""

import re
from datetime import datetime, timezone
from typing import Optional

from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.intelligence.extraction.base import BaseExtractor, ExtractedFields
from spendsync.intelligence.extraction.utils import build_search_text, parse_amount
from spendsync.modules.transactions.dto import StatementDTO
from spendsync.utils.datetime import to_iso_millis

AMOUNT_PATTERN = re.compile(r"amount:\s*\$?([\d,]+(?:\.\d{1,2})?)", re.IGNORECASE)
MERCHANT_PATTERN = re.compile(r"merchant:\s*(.+)", re.IGNORECASE)
DATE_PATTERN = re.compile(r"\bdate:\s*(.+)", re.IGNORECASE)
CARD_PATTERN = re.compile(r"card ending in\s*(\d{4})", re.IGNORECASE)
CREDIT_PATTERN = re.compile(r"\b(?:refund(?:ed)?|credited|return(?:ed)?)\b", re.IGNORECASE)

STATEMENT_PERIOD_PATTERN = re.compile(r"statement period:\s*(.+?)\s*-\s*(.+)", re.IGNORECASE)
TOTAL_DUE_PATTERN = re.compile(r"total due:\s*\$?([\d,]+(?:\.\d{1,2})?)", re.IGNORECASE)

US_DATE_FORMATS = ("%m/%d/%Y", "%b %d, %Y", "%B %d, %Y", "%Y-%m-%d")


def parse_us_date(value: str) -> Optional[datetime]:
    value = value.strip().rstrip(".")
    for fmt in US_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


class ChaseExtractor(BaseExtractor):
    name = "chase"
    issuer = "Chase"
    currency = "USD"

    def can_parse(self, email: RawEmailDTO) -> bool:
        return "chase.com" in email.from_email.lower()

    def extract_fields(self, text: str) -> ExtractedFields:
        fields = ExtractedFields(transaction_mode="credit_card")

        if amount_match := AMOUNT_PATTERN.search(text):
            fields.amount = parse_amount(amount_match.group(1))
            fields.transaction_type = "credited" if CREDIT_PATTERN.search(text) else "debited"
        if merchant_match := MERCHANT_PATTERN.search(text):
            fields.payee = merchant_match.group(1).strip()
        if date_match := DATE_PATTERN.search(text):
            fields.transaction_date = parse_us_date(date_match.group(1))
        if card_match := CARD_PATTERN.search(text):
            fields.card_last4 = card_match.group(1)

        return fields

    def extract_statement(self, email: RawEmailDTO) -> Optional[StatementDTO]:
        text = build_search_text(email)
        period = STATEMENT_PERIOD_PATTERN.search(text)
        total_due_match = TOTAL_DUE_PATTERN.search(text)
        total_due = parse_amount(total_due_match.group(1)) if total_due_match else None

        if not period or total_due is None:
            return None

        start, end = (parse_us_date(bound) for bound in period.group(1, 2))
        return self.build_statement(
            email,
            period_start=to_iso_millis(start) if start else period.group(1).strip(),
            period_end=to_iso_millis(end) if end else period.group(2).strip(),
            total_due=total_due,
        )
