"""Tests for the stores against a real SQLite database.

Every test drives the async repositories with asyncio.run over a fresh
temp-file database.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from spendsync.core.exceptions import SyncJobNotFoundError
from spendsync.intelligence.extraction.hdfc import HdfcExtractor
from spendsync.modules.sync_jobs.models import SyncJobStatus
from spendsync.modules.transactions.dto import (
    CategoryMetadata,
    MerchantCategoryRuleDTO,
)


# ============================================================================
# RAW EMAILS
# ============================================================================


def test_raw_email_upsert_reports_new_then_existing(raw_email_repository, green_choice_email):
    """The second upsert keeps identity and refreshes content."""

    async def run():
        first = await raw_email_repository.upsert(green_choice_email)
        refreshed = green_choice_email.model_copy(update={"subject": "Updated subject"})
        second = await raw_email_repository.upsert(refreshed)
        stored = await raw_email_repository.find_by_provider_message_id(
            "user-1", "gmail", "msg-green"
        )
        return first, second, stored

    first, second, stored = asyncio.run(run())

    assert first.is_new is True
    assert second.is_new is False
    assert second.id == first.id
    assert stored.id == first.id
    assert stored.subject == "Updated subject"
    assert stored.body_text == green_choice_email.body_text


def test_raw_emails_are_scoped_by_user(raw_email_repository, green_choice_email):
    other_user = green_choice_email.model_copy(update={"user_id": "user-2"})

    async def run():
        first = await raw_email_repository.upsert(green_choice_email)
        second = await raw_email_repository.upsert(other_user)
        return first, second, await raw_email_repository.count_by_user("user-1")

    first, second, count = asyncio.run(run())

    assert first.is_new and second.is_new
    assert first.id != second.id
    assert count == 1


def test_raw_email_listing_filters_by_category(raw_email_repository, mailbox_emails):
    async def run():
        for email in mailbox_emails:
            await raw_email_repository.upsert(email)
        await raw_email_repository.upsert(
            mailbox_emails[0].model_copy(
                update={"provider_message_id": "msg-other", "category": "travel"}
            )
        )
        expenses = await raw_email_repository.list_by_user("user-1", "expenses")
        page = await raw_email_repository.list_by_user("user-1", "expenses", limit=2, offset=0)
        return expenses, page, await raw_email_repository.count_by_user("user-1", "travel")

    expenses, page, travel_count = asyncio.run(run())

    assert len(expenses) == 6
    assert len(page) == 2
    assert travel_count == 1


def test_raw_email_pages_are_stable_for_equal_timestamps(raw_email_repository, mailbox_emails):
    """Most sample emails share received_at; the id breaks the tie."""

    async def run():
        for email in mailbox_emails:
            await raw_email_repository.upsert(email)
        pages = [
            await raw_email_repository.list_by_user("user-1", "expenses", limit=1, offset=offset)
            for offset in range(6)
        ]
        return pages, await raw_email_repository.list_by_user("user-1", "expenses")

    pages, full_listing = asyncio.run(run())

    paged_ids = [page[0].id for page in pages]
    assert paged_ids == [email.id for email in full_listing]
    assert len(set(paged_ids)) == 6

    same_time = [email for email in full_listing if email.received_at == full_listing[0].received_at]
    assert len(same_time) > 1
    assert [email.id for email in same_time] == sorted(email.id for email in same_time)


def test_raw_email_lookup_by_id_is_scoped_by_user(raw_email_repository, green_choice_email):
    async def run():
        stored = await raw_email_repository.upsert(green_choice_email)
        own = await raw_email_repository.find_by_id("user-1", stored.id)
        foreign = await raw_email_repository.find_by_id("user-2", stored.id)
        return stored, own, foreign

    stored, own, foreign = asyncio.run(run())

    assert own.id == stored.id
    assert own.provider_message_id == "msg-green"
    assert foreign is None


# ============================================================================
# TRANSACTIONS
# ============================================================================


def test_transaction_insert_is_idempotent(transaction_repository, green_choice_email):
    transactions = HdfcExtractor().extract_transactions(green_choice_email)

    async def run():
        first = await transaction_repository.upsert_many(transactions)
        second = await transaction_repository.upsert_many(transactions)
        stored = await transaction_repository.list_by_user("user-1")
        return first, second, stored

    first, second, stored = asyncio.run(run())

    assert first == 1
    assert second == 0
    assert len(stored) == 1
    assert stored[0].dedupe_hash == transactions[0].dedupe_hash


def test_upsert_many_with_no_transactions(transaction_repository):
    assert asyncio.run(transaction_repository.upsert_many([])) == 0


def test_update_fields_and_manual_overrides(transaction_repository, rupay_email):
    txn = HdfcExtractor().extract_transactions(rupay_email)[0]

    async def run():
        await transaction_repository.upsert_many([txn])
        updated = await transaction_repository.update_fields(
            "user-1", txn.id, {"category": "travel", "categorization_method": "manual"}
        )
        missing = await transaction_repository.update_fields(
            "user-1", "no-such-id", {"category": "travel"}
        )
        other_user = await transaction_repository.update_fields(
            "user-2", txn.id, {"category": "travel"}
        )
        overrides = await transaction_repository.find_manual_overrides("user-1")
        return updated, missing, other_user, overrides

    updated, missing, other_user, overrides = asyncio.run(run())

    assert updated.category == "travel"
    assert missing is None
    assert other_user is None
    assert overrides == {txn.id: "travel"}


# ============================================================================
# STATEMENTS & MERCHANT RULES
# ============================================================================


def test_statement_upsert_reports_insertion(statement_repository, email_factory):
    email = email_factory(
        "msg-statement",
        subject="Your HDFC Bank Credit Card statement",
        body_text="Statement period: 01/01/2026 to 31/01/2026\nTotal amount due: Rs. 15,430.00",
    )
    statement = HdfcExtractor().extract_statement(email)

    async def run():
        first = await statement_repository.upsert(statement)
        second = await statement_repository.upsert(statement)
        return first, second, await statement_repository.list_by_user("user-1")

    first, second, stored = asyncio.run(run())

    assert first is True
    assert second is False
    assert [s.id for s in stored] == [statement.id]


def test_merchant_rule_upsert_replaces_category(merchant_rule_repository):
    async def run():
        await merchant_rule_repository.upsert(
            MerchantCategoryRuleDTO(user_id="user-1", merchant="BABA FAKRUDDIN", category="groceries")
        )
        await merchant_rule_repository.upsert(
            MerchantCategoryRuleDTO(
                user_id="user-1",
                merchant="BABA FAKRUDDIN",
                category="food_dining",
                category_metadata=CategoryMetadata(icon="utensils"),
            )
        )
        return await merchant_rule_repository.list_by_user("user-1")

    rules = asyncio.run(run())

    assert len(rules) == 1
    assert rules[0].category == "food_dining"
    assert rules[0].category_metadata.icon == "utensils"


# ============================================================================
# SYNC JOBS
# ============================================================================


def test_progress_counters_accumulate(sync_job_repository):
    async def run():
        job = await sync_job_repository.create("user-1", "expenses", "subject:bank")
        for _ in range(5):
            await sync_job_repository.increment_progress(job.id, "processed_emails")
        await sync_job_repository.increment_progress(job.id, "transactions", 3)
        await sync_job_repository.increment_progress(job.id, "statements", 0)
        return await sync_job_repository.find_by_id(job.id)

    job = asyncio.run(run())

    assert job.status == SyncJobStatus.PENDING
    assert job.processed_emails == 5
    assert job.transactions == 3
    assert job.statements == 0


def test_concurrent_increments_are_not_lost(sync_job_repository):
    """Each increment is a single UPDATE evaluated by the database."""

    async def run():
        job = await sync_job_repository.create("user-1", "expenses", "subject:bank")
        await asyncio.gather(
            *(sync_job_repository.increment_progress(job.id, "processed_emails") for _ in range(20)),
            *(sync_job_repository.increment_progress(job.id, "transactions", 2) for _ in range(10)),
        )
        return await sync_job_repository.find_by_id(job.id)

    job = asyncio.run(run())

    assert job.processed_emails == 20
    assert job.transactions == 20
    assert job.new_emails == 0


def test_unknown_progress_field_is_rejected(sync_job_repository):
    async def run():
        job = await sync_job_repository.create("user-1", "expenses", "subject:bank")
        await sync_job_repository.increment_progress(job.id, "status", 1)

    with pytest.raises(ValueError):
        asyncio.run(run())


def test_updating_missing_job_raises(sync_job_repository):
    with pytest.raises(SyncJobNotFoundError):
        asyncio.run(sync_job_repository.update("missing", status=SyncJobStatus.FAILED))


def test_last_completed_job_skips_excluded_query(sync_job_repository):
    async def run():
        sync = await sync_job_repository.create("user-1", "expenses", "subject:bank")
        await sync_job_repository.update(
            sync.id, status=SyncJobStatus.COMPLETED, completed_at=datetime(2026, 2, 1, tzinfo=timezone.utc)
        )
        reprocess = await sync_job_repository.create("user-1", "expenses", "__reprocess__")
        await sync_job_repository.update(
            reprocess.id, status=SyncJobStatus.COMPLETED, completed_at=datetime(2026, 3, 1, tzinfo=timezone.utc)
        )
        latest = await sync_job_repository.find_last_completed_by_user_id("user-1", "expenses")
        anchor = await sync_job_repository.find_last_completed_by_user_id(
            "user-1", "expenses", exclude_query="__reprocess__"
        )
        return sync, reprocess, latest, anchor

    sync, reprocess, latest, anchor = asyncio.run(run())

    assert latest.id == reprocess.id
    assert anchor.id == sync.id
