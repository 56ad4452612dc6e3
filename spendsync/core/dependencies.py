"""
Centralized dependency management
Singletons for stateless services and stores, per-request for request context
"""

from functools import lru_cache
from typing import Annotated
from fastapi import Depends, Header


from spendsync.core.config import config
from spendsync.core.background import BackgroundTaskRunner
from spendsync.core.db.engine import AsyncSessionLocal
from spendsync.core.exceptions import ValidationError
from spendsync.integrations.gmail.service import GmailProvider
from spendsync.intelligence.categorization.card_resolver import CardResolver
from spendsync.intelligence.categorization.classifier import TransactionCategorizer
from spendsync.intelligence.categorization.rules import load_categorization_rules
from spendsync.intelligence.extraction.router import ExtractorDispatcher
from spendsync.modules.raw_emails.repository import RawEmailRepository
from spendsync.modules.raw_emails.service import RawEmailService
from spendsync.modules.sync_jobs.repository import SyncJobRepository
from spendsync.modules.sync_jobs.service import EmailSyncService
from spendsync.modules.transactions.repository import (
    MerchantRuleRepository,
    StatementRepository,
    TransactionRepository,
)
from spendsync.modules.transactions.service import TransactionService


# ============================================================================
# PER-REQUEST DEPENDENCIES (New instance per request)
# ============================================================================


async def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Mailbox owner for the request; authentication happens upstream."""
    user_id = x_user_id.strip()
    if not user_id:
        raise ValidationError("X-User-Id header must not be empty")
    return user_id


# ============================================================================
# STORES (Singletons sharing the session factory)
# ============================================================================


@lru_cache()
def get_raw_email_repository():
    """Raw email store - SINGLETON"""
    return RawEmailRepository(AsyncSessionLocal)


@lru_cache()
def get_transaction_repository():
    """Transaction store - SINGLETON"""
    return TransactionRepository(AsyncSessionLocal)


@lru_cache()
def get_statement_repository():
    """Statement store - SINGLETON"""
    return StatementRepository(AsyncSessionLocal)


@lru_cache()
def get_merchant_rule_repository():
    """Merchant rule store - SINGLETON"""
    return MerchantRuleRepository(AsyncSessionLocal)


# ============================================================================
# INTEGRATIONS & INTELLIGENCE LAYER (Singletons)
# ============================================================================


@lru_cache()
def get_mailbox_provider():
    """Gmail provider - SINGLETON"""
    return GmailProvider(
        token_dir=config.gmail_token_dir,
        credentials_path=config.gmail_credentials_path,
        page_size=config.gmail_page_size,
        chunk_size=config.gmail_chunk_size,
        chunk_delay_seconds=config.gmail_chunk_delay_seconds,
        max_concurrency=config.gmail_max_concurrency,
    )


@lru_cache()
def get_categorization_rules():
    """Global rules - loaded once, raises ConfigurationError when malformed"""
    return load_categorization_rules(config.categorization_config_dir)


@lru_cache()
def get_categorizer():
    """Transaction categorizer - SINGLETON (regexes compiled once)"""
    return TransactionCategorizer(get_categorization_rules())


@lru_cache()
def get_card_resolver():
    """Card name resolver - SINGLETON"""
    return CardResolver.from_config_dir(config.categorization_config_dir)


@lru_cache()
def get_extractor_dispatcher():
    """Bank extractor dispatcher - SINGLETON"""
    return ExtractorDispatcher.default(config.extraction_confidence_threshold)


@lru_cache()
def get_task_runner():
    """Background task runner - SINGLETON"""
    return BackgroundTaskRunner()


# ============================================================================
# SERVICE LAYER (Singletons)
# ============================================================================


def build_email_sync_service(session_factory, task_runner=None):
    """
    Email sync service bound to a session factory
    Used directly by workers that run outside the API event loop
    """
    return EmailSyncService(
        provider=get_mailbox_provider(),
        raw_emails=RawEmailRepository(session_factory),
        transactions=TransactionRepository(session_factory),
        statements=StatementRepository(session_factory),
        merchant_rules=MerchantRuleRepository(session_factory),
        sync_jobs=SyncJobRepository(session_factory),
        dispatcher=get_extractor_dispatcher(),
        categorizer=get_categorizer(),
        card_resolver=get_card_resolver(),
        task_runner=task_runner or BackgroundTaskRunner(),
        batch_size=config.sync_batch_size,
        batch_delay_seconds=config.sync_batch_delay_seconds,
        max_results=config.sync_max_results,
        lookback_days=config.sync_lookback_days,
        incremental_overlap_days=config.sync_incremental_overlap_days,
    )


@lru_cache()
def get_email_sync_service():
    """
    Email sync service - SINGLETON
    Coordinates the provider, extractors, categorizer and stores
    """
    return build_email_sync_service(AsyncSessionLocal, task_runner=get_task_runner())


@lru_cache()
def get_transaction_service():
    """Transaction service - SINGLETON"""
    return TransactionService(
        transactions=get_transaction_repository(),
        statements=get_statement_repository(),
        merchant_rules=get_merchant_rule_repository(),
        rules=get_categorization_rules(),
    )


@lru_cache()
def get_raw_email_service():
    """Stored email browsing - SINGLETON"""
    return RawEmailService(get_raw_email_repository())


# ============================================================================
# FASTAPI DEPENDENCY TYPE ALIASES
# ============================================================================

# Request context
UserIdDep = Annotated[str, Depends(get_user_id)]

# Service dependencies
EmailSyncServiceDep = Annotated[EmailSyncService, Depends(get_email_sync_service)]
TransactionServiceDep = Annotated[TransactionService, Depends(get_transaction_service)]
RawEmailServiceDep = Annotated[RawEmailService, Depends(get_raw_email_service)]
