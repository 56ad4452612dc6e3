# Gmail integration
from spendsync.integrations.gmail.service import GmailProvider
from spendsync.integrations.gmail.dto import MessageRefPage, RawEmailDTO

__all__ = ["GmailProvider", "MessageRefPage", "RawEmailDTO"]
