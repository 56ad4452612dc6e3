"""
Declarative categorization rules.

Rule documents are loaded once at startup into frozen models and injected
into the categorizer; nothing mutates them at runtime.
"""

import json
import logging
import os
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from spendsync.core.exceptions import ConfigurationError
from spendsync.intelligence.extraction.identity import normalize_merchant
from spendsync.modules.transactions.dto import CategoryMetadata

logger = logging.getLogger(__name__)

MERCHANT_RULES_FILE = "merchant_rules.json"
DEFAULT_CATEGORIES_FILE = "default_categories.json"


def merchant_key(value: str) -> str:
    """Lookup key for exact merchant matching."""
    return normalize_merchant(value).lower()


class FrozenRule(BaseModel):
    model_config = ConfigDict(frozen=True)


class MerchantPattern(FrozenRule):
    category: str
    confidence: Optional[float] = None
    keywords: tuple[str, ...] = ()


class VpaAmountRule(FrozenRule):
    vpa: str
    category: Optional[str] = None
    confidence: Optional[float] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    requires_manual: bool = False

    def matches(self, vpa: str, amount: float) -> bool:
        if self.vpa.lower() != vpa:
            return False
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True


class VpaPattern(FrozenRule):
    pattern: str
    category: Optional[str] = None
    confidence: Optional[float] = None


class NeftPatterns(FrozenRule):
    category: str = "income_salary"
    confidence: float = 0.9
    salary_keywords: tuple[str, ...] = ()


class MerchantRules(FrozenRule):
    exact_matches: dict[str, str] = Field(default_factory=dict)
    merchant_patterns: tuple[MerchantPattern, ...] = ()
    vpa_amount_rules: tuple[VpaAmountRule, ...] = ()
    vpa_patterns: tuple[VpaPattern, ...] = ()
    neft_patterns: Optional[NeftPatterns] = None

    @field_validator("exact_matches")
    @classmethod
    def normalize_exact_matches(cls, value: dict[str, str]) -> dict[str, str]:
        return {merchant_key(merchant): category for merchant, category in value.items()}


class CategorizationRules(FrozenRule):
    """Global merchant rules plus the category display catalog."""

    merchant_rules: MerchantRules = Field(default_factory=MerchantRules)
    categories: dict[str, CategoryMetadata] = Field(default_factory=dict)

    def metadata_for(self, category: str) -> CategoryMetadata:
        return self.categories.get(category) or CategoryMetadata()


class UserVpaRule(BaseModel):
    category: Optional[str] = None
    default_category: Optional[str] = None
    confidence: Optional[float] = None
    requires_manual: bool = False


class UserCategorizationRules(BaseModel):
    """Per-user rules, consulted ahead of the global ones."""

    manual_overrides: dict[str, str] = Field(default_factory=dict, description="transaction id -> category")
    exact_matches: dict[str, str] = Field(default_factory=dict)
    merchant_patterns: list[MerchantPattern] = Field(default_factory=list)
    vpa_amount_rules: list[VpaAmountRule] = Field(default_factory=list)
    vpa_rules: dict[str, Union[str, UserVpaRule]] = Field(default_factory=dict)

    @field_validator("exact_matches")
    @classmethod
    def normalize_exact_matches(cls, value: dict[str, str]) -> dict[str, str]:
        return {merchant_key(merchant): category for merchant, category in value.items()}

    @field_validator("vpa_rules")
    @classmethod
    def normalize_vpas(cls, value: dict) -> dict:
        return {vpa.lower().strip(): rule for vpa, rule in value.items()}


def _read_json(config_dir: str, filename: str) -> dict:
    path = os.path.join(config_dir, filename)
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Categorization config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e


def load_categorization_rules(config_dir: str) -> CategorizationRules:
    """
    Load merchant rules and category metadata from a config directory.

    Raises:
        ConfigurationError: a document is missing or malformed
    """
    merchant_rules = _read_json(config_dir, MERCHANT_RULES_FILE)
    default_categories = _read_json(config_dir, DEFAULT_CATEGORIES_FILE)

    try:
        rules = CategorizationRules(
            merchant_rules=merchant_rules,
            categories=default_categories.get("categories", {}),
        )
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid categorization rules in {config_dir}: {e}") from e

    logger.info(
        f"Loaded categorization rules from {config_dir}: "
        f"{len(rules.merchant_rules.exact_matches)} exact matches, "
        f"{len(rules.merchant_rules.merchant_patterns)} keyword patterns, "
        f"{len(rules.categories)} categories"
    )
    return rules
