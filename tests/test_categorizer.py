"""Tests for the rule-based transaction categorizer.

Each tier of the cascade is exercised against the packaged rule set,
plus the precedence between tiers and user rules over global ones.
"""

from spendsync.intelligence.categorization.classifier import TransactionCategorizer
from spendsync.intelligence.categorization.rules import (
    CategorizationRules,
    MerchantRules,
    UserCategorizationRules,
    VpaPattern,
)
from spendsync.intelligence.extraction.hdfc import HdfcExtractor
from spendsync.modules.transactions.dto import TransactionDTO


def build_transaction(merchant, mode="upi", transaction_type="debited", amount=100.0, vpa=None, **kwargs):
    return TransactionDTO(
        id=kwargs.pop("id", "txn-1"),
        user_id="user-1",
        dedupe_hash="0" * 64,
        source_email_id="email-1",
        merchant=merchant,
        merchant_raw=merchant,
        vpa=vpa,
        amount=amount,
        transaction_date="2026-02-08T00:00:00.000Z",
        transaction_type=transaction_type,
        transaction_mode=mode,
        **kwargs,
    )


# ============================================================================
# EXACT MATCHES & OVERRIDES
# ============================================================================


def test_global_exact_match(categorizer):
    result = categorizer.categorize(build_transaction("Swiggy", mode="credit_card"))

    assert result["category"] == "food_dining"
    assert result["method"] == "merchant_rule"
    assert result["confidence"] == 0.95
    assert result["requires_review"] is False
    assert result["category_metadata"].icon == "utensils"


def test_user_exact_match_beats_global(categorizer):
    user_rules = UserCategorizationRules(exact_matches={"  SWIGGY ": "groceries"})

    result = categorizer.categorize(build_transaction("swiggy"), user_rules)

    assert result["category"] == "groceries"
    assert result["confidence"] == 1.0


def test_manual_override_wins_over_everything(categorizer):
    user_rules = UserCategorizationRules(
        manual_overrides={"txn-1": "travel"},
        exact_matches={"swiggy": "groceries"},
    )

    result = categorizer.categorize(build_transaction("swiggy"), user_rules)

    assert result["category"] == "travel"
    assert result["method"] == "manual"
    assert result["confidence"] == 1.0
    assert result["requires_review"] is False


# ============================================================================
# UPI RULES
# ============================================================================


def test_vpa_amount_rule_matches_within_range(categorizer):
    txn = build_transaction("random merchant", vpa="Salary.Ops@CorpBank", amount=2000)

    result = categorizer.categorize(txn)

    assert result["category"] == "income_salary"
    assert result["method"] == "vpa_rule"
    assert result["confidence"] == 0.95
    assert result["requires_review"] is False


def test_vpa_amount_rule_respects_minimum(categorizer):
    txn = build_transaction("random merchant", vpa="salary.ops@corpbank", amount=500)

    result = categorizer.categorize(txn)

    assert result["category"] == "uncategorized"


def test_user_vpa_rules_string_and_object_forms(categorizer):
    user_rules = UserCategorizationRules(
        vpa_rules={
            "Landlord@okhdfc": "transfers",
            "maid@ybl": {"default_category": "utilities", "requires_manual": True},
        }
    )

    rent = categorizer.categorize(
        build_transaction("RAVI KUMAR", vpa="landlord@okhdfc"), user_rules
    )
    maid = categorizer.categorize(build_transaction("SUNITA", vpa="maid@ybl"), user_rules)

    assert rent["category"] == "transfers"
    assert rent["confidence"] == 0.95
    assert maid["category"] == "utilities"
    assert maid["requires_review"] is True


def test_global_vpa_pattern(categorizer, rupay_email):
    txn = HdfcExtractor().extract_transactions(rupay_email)[0]

    result = categorizer.categorize(txn)

    assert result["category"] == "transport"
    assert result["method"] == "vpa_rule"
    assert result["confidence"] == 0.9


def test_vpa_rules_only_apply_to_upi(categorizer):
    txn = build_transaction("KA01AR4188", mode="imps", vpa="bmtc.ka01ar4188@cnrb")

    assert categorizer.categorize(txn)["category"] == "uncategorized"


def test_invalid_vpa_pattern_is_skipped():
    rules = CategorizationRules(
        merchant_rules=MerchantRules(
            vpa_patterns=(
                VpaPattern(pattern="(unclosed", category="transport"),
                VpaPattern(pattern="^bmtc", category="transport"),
            )
        )
    )
    categorizer = TransactionCategorizer(rules)

    result = categorizer.categorize(build_transaction("KA01", vpa="bmtc.ka01@cnrb"))

    assert result["category"] == "transport"


# ============================================================================
# NEFT, KEYWORDS & DEFAULT
# ============================================================================


def test_neft_salary_credit(categorizer):
    txn = build_transaction("ACME CORP SALARY JAN", mode="neft", transaction_type="credited")

    result = categorizer.categorize(txn)

    assert result["category"] == "income_salary"
    assert result["method"] == "neft_rule"
    assert result["confidence"] == 0.9


def test_neft_debit_is_not_salary(categorizer):
    txn = build_transaction("ACME CORP SALARY JAN", mode="neft", transaction_type="debited")

    assert categorizer.categorize(txn)["method"] != "neft_rule"


def test_keyword_match(categorizer, green_choice_email):
    txn = HdfcExtractor().extract_transactions(green_choice_email)[0]

    result = categorizer.categorize(txn)

    assert result["category"] == "groceries"
    assert result["method"] == "merchant_rule"
    assert result["confidence"] == 0.85


def test_highest_confidence_keyword_wins(categorizer):
    """Both the transport (0.8) and insurance (0.9) keywords hit."""
    txn = build_transaction("metro insurance kiosk", mode="imps")

    result = categorizer.categorize(txn)

    assert result["category"] == "insurance"
    assert result["confidence"] == 0.9


def test_unmatched_transaction_needs_review(categorizer, upi_account_email):
    txn = HdfcExtractor().extract_transactions(upi_account_email)[0]

    result = categorizer.categorize(txn)

    assert result["category"] == "uncategorized"
    assert result["method"] == "default"
    assert result["confidence"] == 0.0
    assert result["requires_review"] is True
    assert result["category_metadata"].icon == "question-circle"


def test_apply_returns_categorized_copy(categorizer):
    txn = build_transaction("zomato", mode="credit_card")

    categorized = categorizer.apply(txn)

    assert categorized.category == "food_dining"
    assert categorized.subcategory == "food_dining"
    assert categorized.categorization_method == "merchant_rule"
    assert categorized.requires_review is False
    assert txn.category is None
