"""Models for stored mailbox messages."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from spendsync.core.db.base import BaseModel


class RawEmail(BaseModel):
    """A fetched email, stored once per provider message."""

    __tablename__ = "raw_emails"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "provider", "provider_message_id",
            name="uq_raw_emails_user_provider_message",
        ),
    )

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    provider: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Mailbox provider (gmail)",
    )

    provider_message_id: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment="Provider message ID for deduplication",
    )

    from_email: Mapped[str] = mapped_column(String, nullable=False, default="")
    subject: Mapped[str] = mapped_column(String, nullable=False, default="")
    snippet: Mapped[str] = mapped_column(String, nullable=False, default="")

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    body_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    headers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    category: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="expenses",
        comment="Sync category the email was fetched for",
    )

    def __repr__(self) -> str:
        return f"<RawEmail(provider='{self.provider}', message='{self.provider_message_id}', subject='{self.subject}')>"
