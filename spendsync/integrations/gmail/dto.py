from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class RawEmailDTO(BaseModel):
    """DTO representing a fetched mailbox message before it is stored."""

    id: Optional[str] = Field(default=None, description="Stored raw email ID (set by the store)")
    user_id: str = Field(..., description="Owner of the mailbox")
    provider: str = Field(default="gmail", description="Mailbox provider")
    provider_message_id: str = Field(..., description="Provider message ID")
    from_email: str = Field(default="", description="Raw From header")
    subject: str = Field(default="", description="Email subject")
    snippet: str = Field(default="", description="Short preview of the body")
    received_at: datetime = Field(..., description="When the provider received the email")
    body_text: str = Field(default="", description="Email body (plain text)")
    body_html: Optional[str] = Field(default=None, description="Email body (HTML)")
    headers: dict[str, str] = Field(default_factory=dict, description="Lower-cased headers")
    category: str = Field(default="expenses", description="Sync category the email was fetched for")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "user_id": "user-1",
                "provider": "gmail",
                "provider_message_id": "18d1234567890abc",
                "from_email": "HDFC Bank InstaAlerts <alerts@hdfcbank.net>",
                "subject": "You have done a UPI txn. Check details!",
                "snippet": "Rs.150.00 has been debited from account 1771 to VPA ...",
                "received_at": "2026-02-28T10:00:00Z",
                "body_text": "Rs.150.00 has been debited from account 1771 ...",
                "headers": {"from": "alerts@hdfcbank.net"},
                "category": "expenses",
            }
        }


class MessageRefPage(BaseModel):
    """One page of message references returned by a provider listing."""

    ids: list[str] = Field(default_factory=list, description="Provider message IDs")
    next_page_token: Optional[str] = Field(default=None, description="Token for the next page")
