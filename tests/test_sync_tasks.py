"""Tests for the Celery entry point that runs a sync inside a worker.

The task is called in-process: it builds its own NullPool engine on the
configured database URL, here pointed at the test database.
"""

import asyncio

import pytest

from spendsync.core.background import BackgroundTaskRunner
from spendsync.core.config import DEFAULT_CATEGORIZATION_CONFIG_DIR
from spendsync.intelligence.categorization.card_resolver import CardResolver
from spendsync.intelligence.extraction.router import ExtractorDispatcher
from spendsync.modules.raw_emails.repository import RawEmailRepository
from spendsync.modules.sync_jobs import tasks
from spendsync.modules.sync_jobs.repository import SyncJobRepository
from spendsync.modules.sync_jobs.service import EmailSyncService
from spendsync.modules.transactions.repository import (
    MerchantRuleRepository,
    StatementRepository,
    TransactionRepository,
)


@pytest.fixture
def worker_db(tmp_path, session_factory, fake_provider, categorizer, monkeypatch):
    """Point the task at the test database and the in-memory mailbox."""
    monkeypatch.setattr(
        tasks.config, "db_url", f"sqlite+aiosqlite:///{tmp_path / 'spendsync_test.db'}"
    )

    def build_service(worker_session_factory):
        return EmailSyncService(
            provider=fake_provider,
            raw_emails=RawEmailRepository(worker_session_factory),
            transactions=TransactionRepository(worker_session_factory),
            statements=StatementRepository(worker_session_factory),
            merchant_rules=MerchantRuleRepository(worker_session_factory),
            sync_jobs=SyncJobRepository(worker_session_factory),
            dispatcher=ExtractorDispatcher.default(),
            categorizer=categorizer,
            card_resolver=CardResolver.from_config_dir(DEFAULT_CATEGORIZATION_CONFIG_DIR),
            task_runner=BackgroundTaskRunner(),
            batch_size=2,
            batch_delay_seconds=0,
        )

    monkeypatch.setattr(tasks, "build_email_sync_service", build_service)
    return session_factory


def test_task_is_registered_under_module_name():
    assert tasks.run_email_sync.name == "sync_jobs.run_email_sync"


def test_task_runs_sync_to_completion(worker_db, transaction_repository, sync_job_repository):
    result = tasks.run_email_sync("user-1", query="subject:upi")

    assert result["status"] == "completed"
    assert result["query"] == "subject:upi"
    assert result["total_emails"] == 6
    assert result["transactions"] == 4

    async def run():
        stored = await transaction_repository.list_by_user("user-1")
        jobs = await sync_job_repository.find_by_user_id("user-1")
        return stored, jobs

    stored, jobs = asyncio.run(run())

    assert len(stored) == 4
    assert [job.id for job in jobs] == [result["id"]]


def test_task_result_reports_a_failed_job(worker_db, fake_provider):
    """A failed sync is recorded on the job; the task itself still returns."""
    fake_provider.fail_listing = True

    result = tasks.run_email_sync("user-1", query="subject:upi", max_results=10)

    assert result["status"] == "failed"
    assert "listing unavailable" in result["error_message"]
