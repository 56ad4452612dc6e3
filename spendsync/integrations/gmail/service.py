import asyncio
import base64
import logging
import os
import re
import threading
import uuid
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from spendsync.core.exceptions import MailboxAuthError, MailboxProviderError
from spendsync.integrations.gmail.dto import MessageRefPage, RawEmailDTO
from spendsync.utils.datetime import utc_now

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 180
MAX_PAGE_SIZE = 500
MAX_CHUNK_SIZE = 100


def derive_snippet(text: str) -> str:
    """First characters of the whitespace-collapsed text."""
    return re.sub(r"\s+", " ", text or "").strip()[:SNIPPET_LENGTH]


class GmailProvider:
    """Mailbox provider backed by the Gmail API, one token file per user."""

    SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

    def __init__(
        self,
        token_dir: str = "tokens",
        credentials_path: str = "credentials.json",
        page_size: int = MAX_PAGE_SIZE,
        chunk_size: int = MAX_CHUNK_SIZE,
        chunk_delay_seconds: float = 0.2,
        max_concurrency: int = 10,
    ):
        self.token_dir = token_dir
        self.credentials_path = credentials_path
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.chunk_size = max(1, min(chunk_size, MAX_CHUNK_SIZE))
        self.chunk_delay_seconds = chunk_delay_seconds
        self.max_concurrency = max_concurrency
        # googleapiclient services wrap httplib2, which is not thread-safe
        self._local = threading.local()

    def _token_path(self, user_id: str) -> str:
        return os.path.join(self.token_dir, f"{user_id}.json")

    def _get_credentials(self, user_id: str) -> Credentials:
        """Load and, when expired, refresh the user's stored credentials."""
        token_path = self._token_path(user_id)
        if not os.path.exists(token_path):
            raise MailboxAuthError(user_id)

        creds = Credentials.from_authorized_user_file(token_path, self.SCOPES)
        if creds.valid:
            return creds

        if creds.expired and creds.refresh_token:
            logger.info(f"Refreshing expired Gmail credentials for user {user_id}")
            creds.refresh(Request())
            with open(token_path, "w") as token:
                token.write(creds.to_json())
            return creds

        raise MailboxAuthError(user_id)

    def authorize_user(self, user_id: str) -> str:
        """Run the local OAuth consent flow and store the token for a user."""
        if not os.path.exists(self.credentials_path):
            raise FileNotFoundError(
                f"Gmail credentials file not found at {self.credentials_path}. "
                "Please download from Google Cloud Console."
            )
        logger.info(f"Initiating Gmail OAuth flow for user {user_id}")
        flow = InstalledAppFlow.from_client_secrets_file(self.credentials_path, self.SCOPES)
        creds = flow.run_local_server(port=0)

        os.makedirs(self.token_dir, exist_ok=True)
        token_path = self._token_path(user_id)
        with open(token_path, "w") as token:
            token.write(creds.to_json())
        logger.info(f"Saved Gmail credentials to {token_path}")
        return token_path

    def _get_service(self, user_id: str):
        """Get or create a Gmail API service for the user on the current thread."""
        services = getattr(self._local, "services", None)
        if services is None:
            services = self._local.services = {}
        if user_id not in services:
            services[user_id] = build(
                "gmail",
                "v1",
                credentials=self._get_credentials(user_id),
                cache_discovery=False,
            )
        return services[user_id]

    def _parse_email_headers(self, headers: list) -> dict[str, str]:
        """Parse email headers into a dictionary with lower-cased names."""
        result = {}
        for header in headers:
            name = header.get("name", "").lower()
            if name:
                result[name] = header.get("value", "")
        return result

    def _get_email_body(self, payload: dict) -> tuple[str, Optional[str]]:
        """Extract plain text and HTML body from email payload."""
        plain_body = ""
        html_body = None

        def decode(data: str) -> str:
            return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")

        def extract_parts(part: dict):
            nonlocal plain_body, html_body
            mime_type = part.get("mimeType", "")
            data = part.get("body", {}).get("data", "")

            if mime_type == "text/plain" and data and not plain_body:
                plain_body = decode(data)
            elif mime_type == "text/html" and data and html_body is None:
                html_body = decode(data)
            for sub_part in part.get("parts", []):
                extract_parts(sub_part)

        extract_parts(payload)
        return plain_body, html_body

    def _parse_received_at(self, msg_data: dict, headers: dict[str, str]) -> datetime:
        internal_date = msg_data.get("internalDate")
        if internal_date:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)

        date_str = headers.get("date", "")
        if date_str:
            try:
                return parsedate_to_datetime(date_str)
            except (TypeError, ValueError):
                logger.debug(f"Unparseable Date header: {date_str}")
        return utc_now()

    def _to_raw_email(self, user_id: str, msg_data: dict, category: str) -> RawEmailDTO:
        payload = msg_data.get("payload", {})
        headers = self._parse_email_headers(payload.get("headers", []))
        plain_body, html_body = self._get_email_body(payload)

        return RawEmailDTO(
            id=str(uuid.uuid4()),
            user_id=user_id,
            provider="gmail",
            provider_message_id=msg_data["id"],
            from_email=headers.get("from", ""),
            subject=headers.get("subject", ""),
            snippet=msg_data.get("snippet") or derive_snippet(plain_body),
            received_at=self._parse_received_at(msg_data, headers),
            body_text=plain_body,
            body_html=html_body,
            headers=headers,
            category=category,
        )

    def _list_sync(
        self, user_id: str, query: str, page_token: Optional[str], max_results: int
    ) -> dict:
        service = self._get_service(user_id)
        return (
            service.users()
            .messages()
            .list(userId="me", q=query, pageToken=page_token, maxResults=max_results)
            .execute()
        )

    def _get_sync(self, user_id: str, message_id: str) -> dict:
        service = self._get_service(user_id)
        return (
            service.users()
            .messages()
            .get(userId="me", id=message_id, format="full")
            .execute()
        )

    async def list_message_refs(
        self,
        user_id: str,
        query: str,
        page_token: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> MessageRefPage:
        """
        List one page of message ids matching a Gmail search query.

        Args:
            user_id: Mailbox owner
            query: Gmail search query
            page_token: Token returned by the previous page
            max_results: Page size, capped at 500

        Returns:
            MessageRefPage with ids and the next page token, if any
        """
        page_size = min(max_results or self.page_size, self.page_size)
        try:
            results = await asyncio.to_thread(
                self._list_sync, user_id, query, page_token, page_size
            )
        except HttpError as e:
            logger.error(f"Error listing Gmail messages for user {user_id}: {e}")
            raise MailboxProviderError(str(e)) from e

        ids = [message["id"] for message in results.get("messages", []) if message.get("id")]
        return MessageRefPage(ids=ids, next_page_token=results.get("nextPageToken"))

    async def fetch_content(
        self, user_id: str, message_id: str, category: str = "expenses"
    ) -> RawEmailDTO:
        try:
            msg_data = await asyncio.to_thread(self._get_sync, user_id, message_id)
        except HttpError as e:
            raise MailboxProviderError(f"fetching {message_id}: {e}") from e
        return self._to_raw_email(user_id, msg_data, category)

    async def fetch_content_batch(
        self, user_id: str, message_ids: list[str], category: str = "expenses"
    ) -> list[RawEmailDTO]:
        """
        Fetch many messages with bounded concurrency.

        Ids are processed in chunks; within a chunk every fetch settles
        independently, so one failed message is logged and skipped without
        cancelling its siblings.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(message_id: str) -> RawEmailDTO:
            async with semaphore:
                return await self.fetch_content(user_id, message_id, category)

        emails: list[RawEmailDTO] = []
        for start in range(0, len(message_ids), self.chunk_size):
            if start and self.chunk_delay_seconds:
                await asyncio.sleep(self.chunk_delay_seconds)

            chunk = message_ids[start:start + self.chunk_size]
            results = await asyncio.gather(
                *(fetch_one(message_id) for message_id in chunk),
                return_exceptions=True,
            )
            for message_id, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    logger.warning(f"Failed to fetch Gmail message {message_id}: {result}")
                    continue
                emails.append(result)

        return emails
