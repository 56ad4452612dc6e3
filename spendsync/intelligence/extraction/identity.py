"""
Deterministic transaction identity.

A transaction's dedupe hash and id are pure functions of its normalized
fields, so extracting the same email twice yields the same row and the
store's insert-or-ignore makes re-ingestion idempotent.
"""

import hashlib
import json
import re

TRAILING_PUNCTUATION = re.compile(r"[.,;:]+$")


def normalize_merchant(value: str) -> str:
    """Collapse whitespace, trim and strip trailing punctuation."""
    collapsed = re.sub(r"\s+", " ", value or "").strip()
    return TRAILING_PUNCTUATION.sub("", collapsed)


def _sha256(payload: dict) -> str:
    canonical = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_transaction_hash(
    user_id: str,
    source_email_id: str,
    merchant_raw: str,
    amount: float,
    currency: str,
    transaction_date: str,
    transaction_type: str,
    transaction_mode: str,
) -> str:
    """
    Hash the canonical form of a transaction.

    Merchant casing/whitespace and amount formatting do not affect the
    result; any change to amount, date, type or mode does.
    """
    payload = {
        "userId": user_id,
        "sourceEmailId": source_email_id,
        "merchantRaw": normalize_merchant(merchant_raw).lower(),
        "amount": round(float(amount), 2),
        "currency": currency.upper(),
        "transactionDate": transaction_date,
        "transactionType": transaction_type,
        "transactionMode": transaction_mode,
    }
    return _sha256(payload)


def build_statement_hash(user_id: str, source_email_id: str, issuer: str) -> str:
    return _sha256(
        {"userId": user_id, "sourceEmailId": source_email_id, "issuer": issuer.upper()}
    )


def derive_id(digest: str) -> str:
    """
    Format a hex digest as a UUID string without any randomness.

    The version nibble is pinned to 5 and the variant nibble to the RFC 4122
    range (8-b).
    """
    base = re.sub(r"[^0-9a-f]", "", digest.lower()).ljust(32, "0")[:32]
    version = "5" + base[13:16]
    variant = format((int(base[16], 16) & 0x3) | 0x8, "x") + base[17:20]
    return f"{base[0:8]}-{base[8:12]}-{version}-{variant}-{base[20:32]}"
