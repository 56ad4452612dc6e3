"""Browsing the stored copies of synced emails."""

from typing import Optional

from spendsync.core.exceptions import RawEmailNotFoundError
from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.modules.raw_emails.dto import RawEmailPage
from spendsync.modules.raw_emails.repository import RawEmailRepository


class RawEmailService:
    def __init__(self, raw_emails: RawEmailRepository):
        self.raw_emails = raw_emails

    async def list_emails(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        category: Optional[str] = None,
    ) -> RawEmailPage:
        data = await self.raw_emails.list_by_user(
            user_id, category=category, limit=limit, offset=offset
        )
        total = await self.raw_emails.count_by_user(user_id, category=category)
        return RawEmailPage(
            data=data,
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(data) < total,
        )

    async def get_email(self, user_id: str, email_id: str) -> RawEmailDTO:
        email = await self.raw_emails.find_by_id(user_id, email_id)
        if email is None:
            raise RawEmailNotFoundError(email_id)
        return email
