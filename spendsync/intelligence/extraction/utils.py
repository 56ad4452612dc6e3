"""Text helpers shared by the bank extractors."""

import re
from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup

from spendsync.integrations.gmail.dto import RawEmailDTO

BLOCK_TAGS = ["p", "div", "tr", "li", "table", "h1", "h2", "h3", "h4", "h5", "h6"]

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

TIME_SUFFIX = r"(?:[\s,]+(?:at\s+)?(\d{1,2}):(\d{2})(?::(\d{2}))?)?"

# DD/MM/YY[YY] [HH:MM[:SS]], "-" also accepted as separator
NUMERIC_DATE_PATTERN = re.compile(
    r"\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{4}|\d{2})\b" + TIME_SUFFIX
)

# DD Mon YYYY [HH:MM[:SS]]
NAMED_MONTH_DATE_PATTERN = re.compile(
    r"\b(\d{1,2})(?:st|nd|rd|th)?[\s\-]+"
    r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?[\s\-,]+(\d{4})\b"
    + TIME_SUFFIX,
    re.IGNORECASE,
)


def html_to_text(html: str) -> str:
    """Strip tags, turning line-breaking elements into newlines."""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(BLOCK_TAGS):
        tag.append("\n")

    lines = (re.sub(r"\s+", " ", line).strip() for line in soup.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def build_search_text(email: RawEmailDTO) -> str:
    """Subject, body (HTML fallback when the text part is empty) and snippet."""
    body = email.body_text.strip() if email.body_text else ""
    if not body:
        body = html_to_text(email.body_html or "")
    parts = [email.subject, body, email.snippet]
    return "\n".join(part for part in parts if part)


def parse_amount(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


def window_year(year: int) -> int:
    if year < 70:
        return 2000 + year
    if year < 100:
        return 1900 + year
    return year


def build_datetime(
    day: int,
    month: int,
    year: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
) -> Optional[datetime]:
    """Calendar-validated UTC datetime; None for impossible dates like 31/02."""
    try:
        return datetime(
            window_year(year), month, day, hour, minute, second, tzinfo=timezone.utc
        )
    except ValueError:
        return None


def _time_parts(match: re.Match, first_group: int) -> tuple[int, int, int]:
    hour, minute, second = match.group(first_group, first_group + 1, first_group + 2)
    if hour is None:
        return 0, 0, 0
    return int(hour), int(minute), int(second or 0)


def _from_numeric(match: re.Match) -> Optional[datetime]:
    day, month, year = (int(g) for g in match.group(1, 2, 3))
    return build_datetime(day, month, year, *_time_parts(match, 4))


def _from_named_month(match: re.Match) -> Optional[datetime]:
    month = MONTHS[match.group(2).lower()[:3]]
    return build_datetime(
        int(match.group(1)), month, int(match.group(3)), *_time_parts(match, 4)
    )


DATE_GRAMMARS = (
    (NUMERIC_DATE_PATTERN, _from_numeric),
    (NAMED_MONTH_DATE_PATTERN, _from_named_month),
)


def find_date(text: str) -> Optional[datetime]:
    """
    First valid date in the text.

    Grammars are tried in order; within a grammar every candidate is
    validated and invalid ones are skipped.
    """
    for pattern, convert in DATE_GRAMMARS:
        for match in pattern.finditer(text):
            if parsed := convert(match):
                return parsed
    return None


def first_match(patterns, text: str) -> Optional[re.Match]:
    for pattern in patterns:
        if match := pattern.search(text):
            return match
    return None
