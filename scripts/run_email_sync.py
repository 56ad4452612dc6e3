"""
Run one email sync for a user and print the job summary.

Usage:
    python -m scripts.run_email_sync --user-id user-1 --authorize
    python -m scripts.run_email_sync --user-id user-1
    python -m scripts.run_email_sync --user-id user-1 --query "from:alerts@hdfcbank.net newer_than:30d"
    python -m scripts.run_email_sync --user-id user-1 --reprocess
"""

import argparse
import asyncio
import logging
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)


async def _run(args: argparse.Namespace) -> None:
    from spendsync.core.config import config
    from spendsync.core.db.engine import build_engine, build_session_factory
    from spendsync.core.dependencies import build_email_sync_service

    engine = build_engine(config.db_url, use_pool=False)
    try:
        service = build_email_sync_service(build_session_factory(engine))

        if args.reprocess:
            job = await service.create_reprocess_job(args.user_id, args.category)
            print(f"Reprocessing stored emails (job {job.id})...")
            await service.run_reprocess(job.id)
        else:
            job = await service.create_job(args.user_id, args.category, args.query)
            print(f"Syncing with query: {job.query}")
            await service.run_job(job.id, max_results=args.max_results)

        job = await service.get_status(job.id)
    finally:
        await engine.dispose()

    print("\n=== Sync Job ===")
    print(f"Job: {job.id}")
    print(f"Status: {job.status.value}")
    print(f"Emails: {job.processed_emails}/{job.total_emails} processed, {job.new_emails} new")
    print(f"Transactions stored: {job.transactions}")
    print(f"Statements stored: {job.statements}")
    if job.error_message:
        print(f"Error: {job.error_message}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a one-shot email sync for a user")
    parser.add_argument("--user-id", required=True, help="Mailbox owner")
    parser.add_argument("--category", default="expenses", help="Sync category (default: expenses)")
    parser.add_argument(
        "--query",
        default=None,
        help="Gmail search query (default: incremental expense query)",
    )
    parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Max messages to fetch (default: SYNC_MAX_RESULTS)",
    )
    parser.add_argument(
        "--reprocess",
        action="store_true",
        help="Re-extract already stored emails instead of fetching",
    )
    parser.add_argument(
        "--authorize",
        action="store_true",
        help="Run the Gmail OAuth consent flow for the user and exit",
    )
    args = parser.parse_args()

    if args.authorize:
        from spendsync.core.dependencies import get_mailbox_provider

        token_path = get_mailbox_provider().authorize_user(args.user_id)
        print(f"Saved credentials to {token_path}")
        return

    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
