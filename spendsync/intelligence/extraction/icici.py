"""ICICI Bank credit card alert extractor."""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.intelligence.extraction.base import BaseExtractor, ExtractedFields
from spendsync.intelligence.extraction.utils import parse_amount

logger = logging.getLogger(__name__)

AMOUNT_PATTERN = re.compile(
    r"transaction of (?:INR|Rs\.?)\s*([\d,]+(?:\.\d{1,2})?)", re.IGNORECASE
)
TYPE_PATTERN = re.compile(r"\b(used for a transaction|debited|reversed|credited)\b", re.IGNORECASE)
CARD_PATTERN = re.compile(r"Credit Card XX(\d{4})", re.IGNORECASE)
DATE_PATTERN = re.compile(
    r"on\s+([A-Za-z]{3}\s+\d{1,2},\s+\d{4})(?:\s+at\s+(\d{2}:\d{2}:\d{2}))?"
)
MERCHANT_PATTERN = re.compile(r"Info:\s*([A-Za-z0-9&*_\- ]+?)\s*(?:\.|\n|$)")


class IciciExtractor(BaseExtractor):
    """
    Parse ICICI Credit Card transaction alert emails.

    Example pattern:
    Your ICICI Bank Credit Card XX4001 has been used for a transaction of INR 2.01
    on Feb 28, 2026 at 02:43:00. Info: MAXLIFEINSUR.
    """

    name = "icici"
    issuer = "ICICI"
    currency = "INR"

    def can_parse(self, email: RawEmailDTO) -> bool:
        return "icicibank" in email.from_email.lower()

    def extract_fields(self, text: str) -> ExtractedFields:
        fields = ExtractedFields()

        if amount_match := AMOUNT_PATTERN.search(text):
            fields.amount = parse_amount(amount_match.group(1))

        if type_match := TYPE_PATTERN.search(text):
            keyword = type_match.group(1).lower()
            fields.transaction_type = (
                "credited" if keyword in ("reversed", "credited") else "debited"
            )

        if card_match := CARD_PATTERN.search(text):
            fields.card_last4 = card_match.group(1)
            fields.transaction_mode = "credit_card"

        if date_match := DATE_PATTERN.search(text):
            fields.transaction_date = self._parse_date(date_match)

        if merchant_match := MERCHANT_PATTERN.search(text):
            fields.payee = merchant_match.group(1).strip() or None

        return fields

    def _parse_date(self, match: re.Match) -> Optional[datetime]:
        date_str = f"{match.group(1)} {match.group(2) or '00:00:00'}"
        try:
            parsed = datetime.strptime(date_str, "%b %d, %Y %H:%M:%S")
        except ValueError:
            logger.warning(f"ICICI: Could not parse date: {match.group(0)}")
            return None
        return parsed.replace(tzinfo=timezone.utc)
