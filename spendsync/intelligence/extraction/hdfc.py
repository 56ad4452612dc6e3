"""
HDFC Bank alert extractor.

Handles the InstaAlert formats HDFC sends for UPI, card and bank transfer
activity, e.g.:

    Rs.150.00 has been debited from account 1771 to VPA nitisha.mehta3028@oksbi
    NITISHA RAJEN MEHTA on 28-02-26.

    Rs.60.00 has been debited from your HDFC Bank RuPay Credit Card XX2312 to
    bmtc.ka01ar4188@cnrb KA01AR4188 on 07-02-26. Your UPI transaction
    reference number is 123456789012.

Each field has an ordered list of patterns; the first one that matches wins.
"""

import re
from typing import Optional

from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.intelligence.extraction.base import BaseExtractor, ExtractedFields
from spendsync.intelligence.extraction.utils import (
    build_search_text,
    find_date,
    first_match,
    parse_amount,
)
from spendsync.modules.transactions.dto import StatementDTO
from spendsync.utils.datetime import to_iso_millis

CURRENCY = r"(?:Rs\.?|INR|₹)"
AMOUNT = r"([\d,]+(?:\.\d{1,2})?)"
VPA = r"(?P<vpa>[\w.\-]+@[A-Za-z0-9]+)"
CARD_MASK = r"(?:XX|X{2,}|x{2,}|\*+)"

AMOUNT_PATTERNS = [
    # "Rs. INR 1,234.50 is debited", "Rs.60.00 has been debited"
    re.compile(
        CURRENCY + r"\s*(?:INR\s*)?" + AMOUNT
        + r"\s+(?:has\s+been|is|was)\s+(?:debited|credited)",
        re.IGNORECASE,
    ),
    # "Amount Debited: INR 500.00"
    re.compile(
        r"\b(?:amount|amt)\s*(?:debited|credited|spent|paid)?\s*[:\-]\s*"
        + CURRENCY + r"?\s*" + AMOUNT,
        re.IGNORECASE,
    ),
    # "spent Rs 499 at", "debited with INR 20"
    re.compile(
        r"\b(?:debited|credited|spent|paid)\s+(?:with\s+|of\s+|for\s+)?"
        + CURRENCY + r"\s*" + AMOUNT,
        re.IGNORECASE,
    ),
    re.compile(CURRENCY + r"\s*" + AMOUNT, re.IGNORECASE),
]

TRANSACTION_TYPE_PATTERNS = [
    (re.compile(r"\b(?:has\s+been|is|was)\s+debited\b", re.IGNORECASE), "debited"),
    (re.compile(r"\b(?:has\s+been|is|was)\s+credited\b", re.IGNORECASE), "credited"),
    (re.compile(r"\bdebited\b", re.IGNORECASE), "debited"),
    (re.compile(r"\bcredited\b", re.IGNORECASE), "credited"),
    (re.compile(r"\b(?:spent|withdrawn|paid)\b", re.IGNORECASE), "debited"),
    # "Thank you for using your HDFC Bank Credit Card ending 1234 for Rs 499.00"
    (re.compile(r"\bthank\s+you\s+for\s+using\b.*\bcard\b", re.IGNORECASE), "debited"),
    (re.compile(r"\b(?:received|deposited|refunded)\b", re.IGNORECASE), "credited"),
]

UPI_PATTERN = re.compile(r"\b(?:UPI|VPA)\b", re.IGNORECASE)

# a credit card charged through UPI still reports its last 4 digits
CARD_OVER_UPI_PATTERN = re.compile(
    r"\bCredit\s+Card\s+(?:ending\s+(?:with\s+|in\s+)?)?" + CARD_MASK + r"\s*(\d{4})\b",
    re.IGNORECASE,
)

BANK_TRANSFER_PATTERNS = [
    (re.compile(r"\bNEFT\b", re.IGNORECASE), "neft"),
    (re.compile(r"\bIMPS\b", re.IGNORECASE), "imps"),
    (re.compile(r"\bRTGS\b", re.IGNORECASE), "rtgs"),
]

CARD_PATTERNS = [
    re.compile(
        r"\b(?:Credit|Debit)\s+Card\s+(?:ending\s+(?:with\s+|in\s+)?)?(?:no\.?\s*)?"
        + CARD_MASK + r"?\s*(\d{4})\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bCard\s+ending\s+(?:with\s+|in\s+)?(\d{4})\b", re.IGNORECASE),
    # "spent on HDFC Bank Card x1234"
    re.compile(r"\bHDFC\s+Bank\s+Card\s+(?:[Xx]+|\*+)?\s*(\d{4})\b", re.IGNORECASE),
]

# payee name followed by the transaction date
PAYEE_PATTERNS = [
    re.compile(r"\bto\s+VPA\s+" + VPA + r"\s+(?P<payee>.+?)\s+on\s+\d", re.IGNORECASE),
    re.compile(r"\bfrom\s+VPA\s+" + VPA + r"\s+(?P<payee>.+?)\s+on\s+\d", re.IGNORECASE),
    re.compile(r"\bby\s+VPA\s+" + VPA + r"\s+(?P<payee>.+?)\s+on\s+\d", re.IGNORECASE),
    re.compile(r"\bto\s+" + VPA + r"\s+(?P<payee>.+?)\s+on\s+\d", re.IGNORECASE),
    re.compile(
        r"\b(?:at|towards)\s+(?P<payee>[A-Za-z0-9&'*. _\-]+?)\s+on\s+\d", re.IGNORECASE
    ),
    re.compile(r"\b(?:Merchant(?:\s+Name)?|Info)\s*[:\-]\s*(?P<payee>[^\n]+)", re.IGNORECASE),
    re.compile(
        r"\b(?:Beneficiary|Payee)(?:\s+Name)?\s*[:\-]\s*(?P<payee>[^\n]+)", re.IGNORECASE
    ),
]

VPA_PATTERNS = [
    re.compile(r"\bVPA\s*[:\-]?\s*" + VPA, re.IGNORECASE),
    re.compile(r"\bUPI\s+ID\s*[:\-]?\s*" + VPA, re.IGNORECASE),
]

STATEMENT_PERIOD_PATTERN = re.compile(
    r"statement\s*period\s*[:\-]?\s*(.+?)\s+to\s+(.+?)\s*$", re.IGNORECASE | re.MULTILINE
)
TOTAL_DUE_PATTERN = re.compile(
    r"total\s*(?:amount\s*)?due\s*[:\-]?\s*" + CURRENCY + r"?\s*" + AMOUNT, re.IGNORECASE
)


class HdfcExtractor(BaseExtractor):
    name = "hdfc"
    issuer = "HDFC"
    currency = "INR"

    def can_parse(self, email: RawEmailDTO) -> bool:
        sender = email.from_email.lower()
        return "hdfcbank" in sender or "hdfc" in email.subject.lower()

    def extract_fields(self, text: str) -> ExtractedFields:
        fields = ExtractedFields(
            amount=self._extract_amount(text),
            transaction_type=self._extract_transaction_type(text),
            transaction_date=find_date(text),
        )
        fields.transaction_mode, fields.card_last4 = self._extract_mode(text)
        fields.vpa, fields.payee = self._extract_payee(text)
        return fields

    def _extract_amount(self, text: str) -> Optional[float]:
        for pattern in AMOUNT_PATTERNS:
            for match in pattern.finditer(text):
                amount = parse_amount(match.group(1))
                if amount is not None:
                    return amount
        return None

    def _extract_transaction_type(self, text: str) -> Optional[str]:
        for pattern, transaction_type in TRANSACTION_TYPE_PATTERNS:
            if pattern.search(text):
                return transaction_type
        return None

    def _extract_mode(self, text: str) -> tuple[Optional[str], Optional[str]]:
        """Transaction mode and card last 4; UPI beats transfers beats cards."""
        if UPI_PATTERN.search(text):
            card_match = CARD_OVER_UPI_PATTERN.search(text)
            return "upi", card_match.group(1) if card_match else None

        for pattern, mode in BANK_TRANSFER_PATTERNS:
            if pattern.search(text):
                return mode, None

        if card_match := first_match(CARD_PATTERNS, text):
            return "credit_card", card_match.group(1)

        return None, None

    def _extract_payee(self, text: str) -> tuple[Optional[str], Optional[str]]:
        vpa = None
        payee = None

        if match := first_match(PAYEE_PATTERNS, text):
            groups = match.groupdict()
            vpa = groups.get("vpa")
            payee = re.sub(r"\s+", " ", groups["payee"]).strip(" .,;:-") or None

        if vpa is None and (vpa_match := first_match(VPA_PATTERNS, text)):
            vpa = vpa_match.group("vpa")

        return vpa, payee

    def extract_statement(self, email: RawEmailDTO) -> Optional[StatementDTO]:
        text = build_search_text(email)
        period = STATEMENT_PERIOD_PATTERN.search(text)
        total_due_match = TOTAL_DUE_PATTERN.search(text)
        total_due = parse_amount(total_due_match.group(1)) if total_due_match else None

        if not period or total_due is None:
            return None

        return self.build_statement(
            email,
            period_start=_normalize_period_bound(period.group(1)),
            period_end=_normalize_period_bound(period.group(2)),
            total_due=total_due,
        )


def _normalize_period_bound(value: str) -> str:
    """ISO date when the bound parses, otherwise the trimmed original text."""
    value = value.strip(" .,;:")
    parsed = find_date(value)
    return to_iso_millis(parsed) if parsed else value
