import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from spendsync.core.config import config
from spendsync.core.dependencies import get_categorization_rules, get_task_runner
from spendsync.core.error_handler import global_exception_handler
from spendsync.core.middleware.request_id_middleware import RequestIDMiddleware

from spendsync.modules.raw_emails.controller import router as raw_emails_router
from spendsync.modules.sync_jobs.controller import router as sync_jobs_router
from spendsync.modules.transactions.controller import router as transactions_router

logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Malformed rule files stop startup instead of failing every sync
    rules = get_categorization_rules()
    logger.info(f"Loaded categorization rules for {len(rules.categories)} categories")
    yield
    runner = get_task_runner()
    if runner.pending:
        logger.info(f"Waiting for {runner.pending} background sync jobs to finish")
        await runner.wait_all()


app = FastAPI(
    title="Spendsync API",
    description="Bank transaction ingestion from email",
    version="1.0.0",
    lifespan=lifespan,
)

# Exception handlers
app.add_exception_handler(HTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)
app.add_exception_handler(SQLAlchemyError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Middlewares
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(sync_jobs_router)
app.include_router(transactions_router)
app.include_router(raw_emails_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
