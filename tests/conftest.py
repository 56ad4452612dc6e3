"""Shared fixtures for spendsync tests.

Provides a temp-file SQLite database with the full schema, the stores
bound to it, an in-memory mailbox provider and a set of bank alert
emails covering the supported formats.

Async code is driven with asyncio.run from plain tests; the database uses
NullPool so one engine can serve several event loops.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from spendsync.core.background import BackgroundTaskRunner
from spendsync.core.config import DEFAULT_CATEGORIZATION_CONFIG_DIR
from spendsync.core.db.base import Base
from spendsync.core.db.engine import build_engine, build_session_factory
from spendsync.core.exceptions import MailboxProviderError
from spendsync.integrations.gmail.dto import MessageRefPage, RawEmailDTO
from spendsync.intelligence.categorization.card_resolver import CardResolver
from spendsync.intelligence.categorization.classifier import TransactionCategorizer
from spendsync.intelligence.categorization.rules import load_categorization_rules
from spendsync.intelligence.extraction.router import ExtractorDispatcher
from spendsync.modules.raw_emails.models import RawEmail  # noqa: F401
from spendsync.modules.raw_emails.repository import RawEmailRepository
from spendsync.modules.raw_emails.service import RawEmailService
from spendsync.modules.sync_jobs.models import SyncJob  # noqa: F401
from spendsync.modules.sync_jobs.repository import SyncJobRepository
from spendsync.modules.sync_jobs.service import EmailSyncService
from spendsync.modules.transactions.models import (  # noqa: F401
    MerchantCategoryRule,
    Statement,
    Transaction,
)
from spendsync.modules.transactions.repository import (
    MerchantRuleRepository,
    StatementRepository,
    TransactionRepository,
)
from spendsync.modules.transactions.service import TransactionService

USER_ID = "user-1"
HDFC_SENDER = "HDFC Bank InstaAlerts <alerts@hdfcbank.net>"
UPI_SUBJECT = "❗ You have done a UPI txn. Check details!"


def make_email(
    provider_message_id: str,
    body_text: str = "",
    subject: str = "HDFC Transaction Alert",
    from_email: str = HDFC_SENDER,
    body_html: Optional[str] = None,
    snippet: str = "",
    received_at: Optional[datetime] = None,
    user_id: str = USER_ID,
) -> RawEmailDTO:
    """Build a fetched (not yet stored) email."""
    return RawEmailDTO(
        user_id=user_id,
        provider_message_id=provider_message_id,
        from_email=from_email,
        subject=subject,
        snippet=snippet,
        received_at=received_at or datetime(2026, 2, 8, 10, 0, tzinfo=timezone.utc),
        body_text=body_text,
        body_html=body_html,
    )


@pytest.fixture
def email_factory():
    """Factory for fetched emails; defaults to an HDFC alert for USER_ID."""
    return make_email


# ============================================================================
# SAMPLE EMAILS
# ============================================================================

GREEN_CHOICE_BODY = (
    "Rs. INR 1,234.50 is debited from your account XX2014 for UPI txn to VPA "
    "paytm.s1j0hcc@pty GREEN CHOICE FRUITS AND VEGETABLES on 15 Jan 2025."
)

RUPAY_BODY = (
    "Dear Customer,\n\nRs.60.00 has been debited from your HDFC Bank RuPay Credit "
    "Card XX2312 to bmtc.ka01ar4188@cnrb KA01AR4188 on 07-02-26. Your UPI "
    "transaction reference number is 118317224974.\n\nIf you did not authorize "
    "this transaction, please report it immediately by calling 18002586161 Or "
    "SMS BLOCK CC 2312 to 7308080808.\n\nWarm Regards,\nHDFC Bank"
)

UPI_ACCOUNT_BODY = (
    "Dear Customer, Rs.290.00 has been debited from account 9212 to VPA "
    "9611653384@axl BABA FAKRUDDIN on 08-02-26. Your UPI transaction reference "
    "number is 603927536719. If you did not authorize this transaction, please "
    "report it immediately by calling 18002586161 Or SMS BLOCK UPI to "
    "7308080808. Warm Regards, HDFC Bank"
)

ICICI_BODY = (
    "Dear Customer,\nYour ICICI Bank Credit Card XX4001 has been used for a "
    "transaction of INR 2.01 on Feb 28, 2026 at 02:43:00. Info: MAXLIFEINSUR.\n"
    "The Available Credit Limit on your card is INR 1,20,000.00."
)


@pytest.fixture
def green_choice_email():
    return make_email("msg-green", body_text=GREEN_CHOICE_BODY, snippet=GREEN_CHOICE_BODY)


@pytest.fixture
def rupay_email():
    return make_email(
        "msg-rupay",
        body_text=RUPAY_BODY,
        subject=UPI_SUBJECT,
        received_at=datetime(2026, 2, 7, 10, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def upi_account_email():
    return make_email("msg-upi-account", body_text=UPI_ACCOUNT_BODY, subject=UPI_SUBJECT)


@pytest.fixture
def icici_email():
    return make_email(
        "msg-icici",
        body_text=ICICI_BODY,
        subject="Transaction alert for your ICICI Bank Credit Card",
        from_email="credit_cards@icicibank.com",
    )


@pytest.fixture
def mailbox_emails(green_choice_email, rupay_email, upi_account_email, icici_email):
    """Three HDFC alerts, one ICICI alert and two emails that yield nothing."""
    return [
        green_choice_email,
        rupay_email,
        upi_account_email,
        icici_email,
        make_email("msg-notice", body_text="HDFC update: account notification only."),
        make_email(
            "msg-newsletter",
            body_text="Our spring sale starts today!",
            subject="Spring sale",
            from_email="news@shop.example.com",
        ),
    ]


# ============================================================================
# FAKE MAILBOX PROVIDER
# ============================================================================


class FakeMailboxProvider:
    """In-memory provider paging over a fixed list of emails."""

    def __init__(self, emails, page_size: int = 4, fail_listing: bool = False):
        self.emails = {email.provider_message_id: email for email in emails}
        self.page_size = page_size
        self.fail_listing = fail_listing
        self.failing_ids: set[str] = set()
        self.queries: list[str] = []
        self.fetched_batches: list[list[str]] = []

    async def list_message_refs(
        self,
        user_id: str,
        query: str,
        page_token: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> MessageRefPage:
        self.queries.append(query)
        if self.fail_listing:
            raise MailboxProviderError("listing unavailable")

        ids = list(self.emails)
        start = int(page_token or 0)
        size = min(max_results or self.page_size, self.page_size)
        end = start + size
        return MessageRefPage(
            ids=ids[start:end],
            next_page_token=str(end) if end < len(ids) else None,
        )

    async def fetch_content_batch(
        self, user_id: str, message_ids: list[str], category: str = "expenses"
    ) -> list[RawEmailDTO]:
        self.fetched_batches.append(list(message_ids))
        return [
            self.emails[message_id].model_copy(update={"category": category})
            for message_id in message_ids
            if message_id not in self.failing_ids
        ]


# ============================================================================
# DATABASE & STORES
# ============================================================================


@pytest.fixture
def session_factory(tmp_path):
    """Session factory over a fresh temp-file SQLite database."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'spendsync_test.db'}", use_pool=False)

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())
    yield build_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def raw_email_repository(session_factory):
    return RawEmailRepository(session_factory)


@pytest.fixture
def transaction_repository(session_factory):
    return TransactionRepository(session_factory)


@pytest.fixture
def statement_repository(session_factory):
    return StatementRepository(session_factory)


@pytest.fixture
def merchant_rule_repository(session_factory):
    return MerchantRuleRepository(session_factory)


@pytest.fixture
def sync_job_repository(session_factory):
    return SyncJobRepository(session_factory)


# ============================================================================
# RULES & SERVICES
# ============================================================================


@pytest.fixture(scope="session")
def categorization_rules():
    return load_categorization_rules(DEFAULT_CATEGORIZATION_CONFIG_DIR)


@pytest.fixture(scope="session")
def categorizer(categorization_rules):
    return TransactionCategorizer(categorization_rules)


@pytest.fixture
def fake_provider(mailbox_emails):
    return FakeMailboxProvider(mailbox_emails)


@pytest.fixture
def sync_service(
    fake_provider,
    raw_email_repository,
    transaction_repository,
    statement_repository,
    merchant_rule_repository,
    sync_job_repository,
    categorizer,
):
    return EmailSyncService(
        provider=fake_provider,
        raw_emails=raw_email_repository,
        transactions=transaction_repository,
        statements=statement_repository,
        merchant_rules=merchant_rule_repository,
        sync_jobs=sync_job_repository,
        dispatcher=ExtractorDispatcher.default(),
        categorizer=categorizer,
        card_resolver=CardResolver.from_config_dir(DEFAULT_CATEGORIZATION_CONFIG_DIR),
        task_runner=BackgroundTaskRunner(),
        batch_size=2,
        batch_delay_seconds=0,
    )


@pytest.fixture
def transaction_service(
    transaction_repository,
    statement_repository,
    merchant_rule_repository,
    categorization_rules,
):
    return TransactionService(
        transactions=transaction_repository,
        statements=statement_repository,
        merchant_rules=merchant_rule_repository,
        rules=categorization_rules,
    )


@pytest.fixture
def raw_email_service(raw_email_repository):
    return RawEmailService(raw_email_repository)
