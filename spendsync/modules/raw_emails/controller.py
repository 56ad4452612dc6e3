from typing import Optional

from fastapi import APIRouter, Query

from spendsync.core.dependencies import RawEmailServiceDep, UserIdDep
from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.modules.raw_emails.dto import RawEmailPage

router = APIRouter(prefix="/emails", tags=["emails"])


@router.get("", response_model=RawEmailPage)
async def list_emails(
    user_id: UserIdDep,
    raw_email_service: RawEmailServiceDep,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    category: Optional[str] = None,
):
    """Stored emails, most recently received first"""
    return await raw_email_service.list_emails(
        user_id, limit=limit, offset=offset, category=category
    )


@router.get("/{email_id}", response_model=RawEmailDTO)
async def get_email(
    email_id: str,
    user_id: UserIdDep,
    raw_email_service: RawEmailServiceDep,
):
    """One stored email with its text, HTML and headers"""
    return await raw_email_service.get_email(user_id, email_id)
