"""
Rule-based transaction categorization.

Tiers are evaluated in priority order and the first tier that produces a
match wins:
1. Manual override by transaction id
2. Exact merchant match (user table, then global)
3. UPI: VPA + amount range rules, user VPA map, global VPA regexes
4. NEFT salary credits
5. Keyword patterns (highest confidence among all matches)
6. Default: uncategorized, flagged for review
"""

import logging
import re
from typing import NamedTuple, Optional

from typing_extensions import TypedDict

from spendsync.intelligence.categorization.rules import (
    CategorizationRules,
    MerchantPattern,
    UserCategorizationRules,
    UserVpaRule,
    VpaPattern,
    merchant_key,
)
from spendsync.modules.transactions.dto import (
    CategorizationMethod,
    CategoryMetadata,
    TransactionDTO,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"

USER_EXACT_CONFIDENCE = 1.0
GLOBAL_EXACT_CONFIDENCE = 0.95
VPA_RULE_CONFIDENCE = 0.95
VPA_PATTERN_CONFIDENCE = 0.9
USER_KEYWORD_CONFIDENCE = 0.9
GLOBAL_KEYWORD_CONFIDENCE = 0.85


class CategorizationResult(TypedDict):
    """Type-safe categorization result structure."""

    category: str
    subcategory: str
    confidence: float
    method: CategorizationMethod
    requires_review: bool
    category_metadata: CategoryMetadata


class _Match(NamedTuple):
    category: str
    confidence: float
    method: CategorizationMethod
    requires_review: bool = False


class TransactionCategorizer:
    def __init__(self, rules: CategorizationRules):
        self.rules = rules
        self._vpa_patterns = self._compile_vpa_patterns(rules.merchant_rules.vpa_patterns)

    @staticmethod
    def _compile_vpa_patterns(patterns) -> list[tuple[re.Pattern, VpaPattern]]:
        compiled = []
        for rule in patterns:
            try:
                compiled.append((re.compile(rule.pattern, re.IGNORECASE), rule))
            except re.error as e:
                logger.debug(f"Skipping invalid VPA pattern {rule.pattern!r}: {e}")
        return compiled

    def categorize(
        self,
        transaction: TransactionDTO,
        user_rules: Optional[UserCategorizationRules] = None,
    ) -> CategorizationResult:
        user_rules = user_rules or UserCategorizationRules()
        payee = merchant_key(transaction.merchant_raw or transaction.merchant)

        if override := user_rules.manual_overrides.get(transaction.id):
            return self._enrich(_Match(override, 1.0, "manual"))

        if payee and (match := self._match_exact(payee, user_rules)):
            return self._enrich(match)

        if transaction.transaction_mode == "upi" and payee and transaction.vpa:
            if match := self._match_vpa(transaction, user_rules):
                return self._enrich(match)

        if (
            transaction.transaction_mode == "neft"
            and transaction.transaction_type == "credited"
            and payee
        ):
            if match := self._match_neft(payee):
                return self._enrich(match)

        if payee and (match := self._match_keywords(payee, user_rules)):
            return self._enrich(match)

        return self._enrich(_Match(UNCATEGORIZED, 0.0, "default", requires_review=True))

    def apply(
        self,
        transaction: TransactionDTO,
        user_rules: Optional[UserCategorizationRules] = None,
    ) -> TransactionDTO:
        """Return a copy of the transaction carrying its categorization."""
        result = self.categorize(transaction, user_rules)
        return transaction.model_copy(
            update={
                "category": result["category"],
                "subcategory": result["subcategory"],
                "confidence": result["confidence"],
                "categorization_method": result["method"],
                "requires_review": result["requires_review"],
                "category_metadata": result["category_metadata"],
            }
        )

    def _match_exact(self, payee: str, user_rules: UserCategorizationRules) -> Optional[_Match]:
        if category := user_rules.exact_matches.get(payee):
            return _Match(category, USER_EXACT_CONFIDENCE, "merchant_rule")
        if category := self.rules.merchant_rules.exact_matches.get(payee):
            return _Match(category, GLOBAL_EXACT_CONFIDENCE, "merchant_rule")
        return None

    def _match_vpa(
        self, transaction: TransactionDTO, user_rules: UserCategorizationRules
    ) -> Optional[_Match]:
        vpa = transaction.vpa.lower().strip()
        amount = transaction.amount or 0

        amount_rules = [*user_rules.vpa_amount_rules, *self.rules.merchant_rules.vpa_amount_rules]
        for rule in amount_rules:
            if rule.category and rule.matches(vpa, amount):
                return _Match(
                    rule.category,
                    _confidence(rule.confidence, VPA_RULE_CONFIDENCE),
                    "vpa_rule",
                    rule.requires_manual,
                )

        if (user_rule := user_rules.vpa_rules.get(vpa)) is not None:
            if isinstance(user_rule, str):
                return _Match(user_rule, VPA_RULE_CONFIDENCE, "vpa_rule")
            if match := _match_user_vpa_rule(user_rule):
                return match

        for pattern, rule in self._vpa_patterns:
            if rule.category and pattern.search(vpa):
                return _Match(
                    rule.category,
                    _confidence(rule.confidence, VPA_PATTERN_CONFIDENCE),
                    "vpa_rule",
                )

        return None

    def _match_neft(self, payee: str) -> Optional[_Match]:
        neft = self.rules.merchant_rules.neft_patterns
        if neft is None:
            return None
        for keyword in neft.salary_keywords:
            if keyword.lower() in payee:
                return _Match(neft.category, neft.confidence, "neft_rule")
        return None

    def _match_keywords(
        self, payee: str, user_rules: UserCategorizationRules
    ) -> Optional[_Match]:
        """Best keyword match; ties keep the earliest rule, user rules first."""
        best: Optional[_Match] = None
        candidates = [
            (pattern, USER_KEYWORD_CONFIDENCE) for pattern in user_rules.merchant_patterns
        ] + [
            (pattern, GLOBAL_KEYWORD_CONFIDENCE)
            for pattern in self.rules.merchant_rules.merchant_patterns
        ]

        for pattern, default_confidence in candidates:
            if not _keyword_hit(pattern, payee):
                continue
            confidence = _confidence(pattern.confidence, default_confidence)
            if best is None or confidence > best.confidence:
                best = _Match(pattern.category, confidence, "merchant_rule")

        return best

    def _enrich(self, match: _Match) -> CategorizationResult:
        return CategorizationResult(
            category=match.category,
            subcategory=match.category,
            confidence=match.confidence,
            method=match.method,
            requires_review=match.requires_review,
            category_metadata=self.rules.metadata_for(match.category),
        )


def _confidence(value: Optional[float], default: float) -> float:
    return default if value is None else value


def _keyword_hit(pattern: MerchantPattern, payee: str) -> bool:
    return any(keyword.lower() in payee for keyword in pattern.keywords if keyword)


def _match_user_vpa_rule(rule: UserVpaRule) -> Optional[_Match]:
    category = rule.category or rule.default_category
    if not category:
        return None
    return _Match(
        category,
        _confidence(rule.confidence, VPA_RULE_CONFIDENCE),
        "vpa_rule",
        rule.requires_manual,
    )
