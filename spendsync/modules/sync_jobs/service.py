"""Mailbox sync orchestration."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from spendsync.core.background import BackgroundTaskRunner
from spendsync.core.exceptions import SyncJobNotFoundError
from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.integrations.gmail.service import GmailProvider
from spendsync.intelligence.categorization.card_resolver import CardResolver
from spendsync.intelligence.categorization.classifier import TransactionCategorizer
from spendsync.intelligence.categorization.rules import UserCategorizationRules
from spendsync.intelligence.extraction.router import ExtractorDispatcher
from spendsync.modules.raw_emails.repository import RawEmailRepository
from spendsync.modules.sync_jobs.dto import SyncJobDTO
from spendsync.modules.sync_jobs.models import SyncJobStatus
from spendsync.modules.sync_jobs.repository import SyncJobRepository
from spendsync.modules.transactions.dto import StatementDTO, TransactionDTO
from spendsync.modules.transactions.repository import (
    MerchantRuleRepository,
    StatementRepository,
    TransactionRepository,
)
from spendsync.utils.datetime import to_epoch_seconds, utc_now

logger = logging.getLogger(__name__)

DEFAULT_EXPENSE_QUERY = (
    "subject:(statement OR receipt OR purchase OR transaction OR payment "
    "OR invoice OR card OR bank OR upi)"
)
REPROCESS_QUERY = "__reprocess__"


@dataclass
class EmailOutcome:
    """Per-email counters; filled in as each write succeeds."""

    is_new: bool = False
    transactions: int = 0
    statements: int = 0


class EmailSyncService:
    """
    Runs mailbox syncs as background jobs.

    Callers start a job and poll its row; the job moves
    pending -> processing -> completed | failed and its progress counters
    only ever grow.
    """

    def __init__(
        self,
        provider: GmailProvider,
        raw_emails: RawEmailRepository,
        transactions: TransactionRepository,
        statements: StatementRepository,
        merchant_rules: MerchantRuleRepository,
        sync_jobs: SyncJobRepository,
        dispatcher: ExtractorDispatcher,
        categorizer: TransactionCategorizer,
        card_resolver: CardResolver,
        task_runner: BackgroundTaskRunner,
        batch_size: int = 100,
        batch_delay_seconds: float = 0.2,
        max_results: int = 1000,
        lookback_days: int = 180,
        incremental_overlap_days: int = 0,
    ):
        self.provider = provider
        self.raw_emails = raw_emails
        self.transactions = transactions
        self.statements = statements
        self.merchant_rules = merchant_rules
        self.sync_jobs = sync_jobs
        self.dispatcher = dispatcher
        self.categorizer = categorizer
        self.card_resolver = card_resolver
        self.task_runner = task_runner
        self.batch_size = max(1, batch_size)
        self.batch_delay_seconds = batch_delay_seconds
        self.max_results = max_results
        self.lookback_days = lookback_days
        self.incremental_overlap_days = incremental_overlap_days

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def start_sync(
        self,
        user_id: str,
        category: str = "expenses",
        query: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> str:
        """
        Create a sync job and run it in the background.

        Without a query the sync is incremental: it only asks for mail
        received since the last completed sync of the same category.

        Returns:
            The new job's id; poll get_status for progress
        """
        job = await self.create_job(user_id, category, query)
        logger.info(f"Started email sync job {job.id} for user {user_id}: {job.query}")

        self.task_runner.submit(
            self.run_job(job.id, max_results=max_results), name=f"email-sync-{job.id}"
        )
        return job.id

    async def create_job(
        self, user_id: str, category: str = "expenses", query: Optional[str] = None
    ) -> SyncJobDTO:
        """Create a pending sync job without running it."""
        if query and query.strip():
            resolved_query = query.strip()
        else:
            resolved_query = await self.build_incremental_query(user_id, category)
        return await self.sync_jobs.create(user_id, category, resolved_query)

    async def create_reprocess_job(self, user_id: str, category: str = "expenses") -> SyncJobDTO:
        return await self.sync_jobs.create(user_id, category, REPROCESS_QUERY)

    async def start_reprocess(self, user_id: str, category: str = "expenses") -> str:
        """Re-run extraction over every stored email without contacting the provider."""
        job = await self.create_reprocess_job(user_id, category)
        logger.info(f"Started reprocess job {job.id} for user {user_id}")

        self.task_runner.submit(self.run_reprocess(job.id), name=f"email-reprocess-{job.id}")
        return job.id

    async def get_status(self, job_id: str) -> Optional[SyncJobDTO]:
        return await self.sync_jobs.find_by_id(job_id)

    async def list_recent_jobs(
        self, user_id: str, limit: int = 10, category: Optional[str] = None
    ) -> list[SyncJobDTO]:
        return await self.sync_jobs.find_by_user_id(user_id, limit=limit, category=category)

    async def build_incremental_query(
        self, user_id: str, category: str, base_query: str = DEFAULT_EXPENSE_QUERY
    ) -> str:
        last_completed = await self.sync_jobs.find_last_completed_by_user_id(
            user_id, category, exclude_query=REPROCESS_QUERY
        )
        if last_completed and last_completed.completed_at:
            since = last_completed.completed_at - timedelta(days=self.incremental_overlap_days)
            return f"{base_query} after:{to_epoch_seconds(since)}"
        return f"{base_query} newer_than:{self.lookback_days}d"

    async def build_user_rules(self, user_id: str) -> UserCategorizationRules:
        """User rules: bulk-categorized merchants and manually corrected transactions."""
        merchant_rules = await self.merchant_rules.list_by_user(user_id)
        manual_overrides = await self.transactions.find_manual_overrides(user_id)
        return UserCategorizationRules(
            exact_matches={rule.merchant: rule.category for rule in merchant_rules},
            manual_overrides=manual_overrides,
        )

    # ------------------------------------------------------------------
    # Job bodies
    # ------------------------------------------------------------------

    async def run_job(self, job_id: str, max_results: Optional[int] = None) -> None:
        job = await self._load_job(job_id)
        try:
            await self.sync_jobs.update(
                job_id, status=SyncJobStatus.PROCESSING, started_at=utc_now()
            )

            refs = await self._list_all_refs(
                job.user_id, job.query, max_results or self.max_results
            )
            await self.sync_jobs.update(job_id, total_emails=len(refs))
            logger.info(f"Sync job {job_id}: {len(refs)} messages match {job.query!r}")

            user_rules = await self.build_user_rules(job.user_id)

            for batch_number, start in enumerate(range(0, len(refs), self.batch_size)):
                if batch_number and self.batch_delay_seconds:
                    await asyncio.sleep(self.batch_delay_seconds)

                batch = refs[start:start + self.batch_size]
                try:
                    emails = await self.provider.fetch_content_batch(
                        job.user_id, batch, job.category
                    )
                except Exception as e:
                    logger.error(
                        f"Sync job {job_id}: skipping batch {batch_number} "
                        f"({len(batch)} messages) after fetch failure: {e}"
                    )
                    continue

                for email in emails:
                    await self._process_email(job_id, email, user_rules)

            await self.sync_jobs.update(
                job_id, status=SyncJobStatus.COMPLETED, completed_at=utc_now()
            )
            logger.info(f"Sync job {job_id} completed")
        except Exception as e:
            await self._mark_failed(job_id, e)

    async def run_reprocess(self, job_id: str) -> None:
        job = await self._load_job(job_id)
        try:
            await self.sync_jobs.update(
                job_id, status=SyncJobStatus.PROCESSING, started_at=utc_now()
            )
            total = await self.raw_emails.count_by_user(job.user_id, job.category)
            await self.sync_jobs.update(job_id, total_emails=total)

            user_rules = await self.build_user_rules(job.user_id)

            # a concurrent sync may add emails; ordering by (received_at, id) keeps pages
            # deterministic and new mail is picked up by the next reprocess
            for offset in range(0, total, self.batch_size):
                emails = await self.raw_emails.list_by_user(
                    job.user_id, job.category, limit=self.batch_size, offset=offset
                )
                for email in emails:
                    outcome = EmailOutcome()
                    try:
                        await self._extract_and_store(email, user_rules, outcome)
                    except Exception as e:
                        logger.warning(f"Reprocess job {job_id}: email {email.id} failed: {e}")
                    await self._record_progress(job_id, outcome)

            await self.sync_jobs.update(
                job_id, status=SyncJobStatus.COMPLETED, completed_at=utc_now()
            )
            logger.info(f"Reprocess job {job_id} completed")
        except Exception as e:
            await self._mark_failed(job_id, e)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_job(self, job_id: str) -> SyncJobDTO:
        job = await self.sync_jobs.find_by_id(job_id)
        if job is None:
            raise SyncJobNotFoundError(job_id)
        return job

    async def _mark_failed(self, job_id: str, error: Exception) -> None:
        logger.error(f"Sync job {job_id} failed: {error}", exc_info=error)
        try:
            await self.sync_jobs.update(
                job_id,
                status=SyncJobStatus.FAILED,
                error_message=str(error) or type(error).__name__,
                completed_at=utc_now(),
            )
        except Exception as update_error:
            logger.error(f"Could not mark sync job {job_id} as failed: {update_error}")
            raise update_error from error

    async def _list_all_refs(self, user_id: str, query: str, cap: int) -> list[str]:
        """Page through the provider listing until exhausted or capped."""
        refs: list[str] = []
        page_token: Optional[str] = None

        while len(refs) < cap:
            page = await self.provider.list_message_refs(
                user_id, query, page_token=page_token, max_results=cap - len(refs)
            )
            refs.extend(page.ids)
            if not page.next_page_token:
                break
            page_token = page.next_page_token

        return list(dict.fromkeys(refs))[:cap]

    async def _process_email(
        self, job_id: str, email: RawEmailDTO, user_rules: UserCategorizationRules
    ) -> None:
        outcome = EmailOutcome()
        try:
            await self._ingest_email(email, user_rules, outcome)
        except Exception as e:
            logger.warning(
                f"Sync job {job_id}: failed to process message {email.provider_message_id}: {e}"
            )
        await self._record_progress(job_id, outcome)

    async def _record_progress(self, job_id: str, outcome: EmailOutcome) -> None:
        # processed first so new_emails never overtakes it
        await self.sync_jobs.increment_progress(job_id, "processed_emails")
        if outcome.is_new:
            await self.sync_jobs.increment_progress(job_id, "new_emails")
        await self.sync_jobs.increment_progress(job_id, "transactions", outcome.transactions)
        await self.sync_jobs.increment_progress(job_id, "statements", outcome.statements)

    async def _ingest_email(
        self, email: RawEmailDTO, user_rules: UserCategorizationRules, outcome: EmailOutcome
    ) -> None:
        result = await self.raw_emails.upsert(email)
        if not result.is_new:
            return

        stored = email.model_copy(update={"id": result.id})
        await self._extract_and_store(stored, user_rules, outcome)
        # only an email whose extraction finished counts as new
        outcome.is_new = True

    async def _extract_and_store(
        self, email: RawEmailDTO, user_rules: UserCategorizationRules, outcome: EmailOutcome
    ) -> None:
        """
        Extract, categorize and persist, recording each write on the outcome.

        A stored statement stays counted even if the transaction write fails.
        """
        extractor = self.dispatcher.find_extractor(email)
        if extractor is None:
            return

        statement = extractor.extract_statement(email)
        if statement is not None and await self.statements.upsert(statement):
            outcome.statements = 1

        transactions = [
            self._finalize(transaction, user_rules, statement)
            for transaction in extractor.extract_transactions(email)
        ]
        inserted = await self.transactions.upsert_many(transactions)
        outcome.transactions = inserted

        if transactions:
            logger.debug(
                f"{extractor.name}: {inserted}/{len(transactions)} transactions stored "
                f"from message {email.provider_message_id}"
            )

    def _finalize(
        self,
        transaction: TransactionDTO,
        user_rules: UserCategorizationRules,
        statement: Optional[StatementDTO],
    ) -> TransactionDTO:
        categorized = self.categorizer.apply(transaction, user_rules)
        return categorized.model_copy(
            update={
                "card_name": self.card_resolver.resolve(categorized.card_last4),
                "statement_id": statement.id if statement else None,
            }
        )
