"""Tests for the text helpers shared by bank extractors."""

from datetime import datetime, timezone

from spendsync.intelligence.extraction.utils import (
    build_search_text,
    find_date,
    html_to_text,
    parse_amount,
    window_year,
)


# ============================================================================
# DATES
# ============================================================================


def test_find_date_named_month():
    """'15 Jan 2025' parses to midnight UTC."""
    assert find_date("debited on 15 Jan 2025.") == datetime(2025, 1, 15, tzinfo=timezone.utc)


def test_find_date_numeric_two_digit_year():
    """DD-MM-YY uses the 2-digit year window."""
    assert find_date("on 07-02-26. Your UPI") == datetime(2026, 2, 7, tzinfo=timezone.utc)


def test_find_date_with_time():
    """A trailing HH:MM[:SS] is kept."""
    assert find_date("on 15/01/2025 14:05:09") == datetime(
        2025, 1, 15, 14, 5, 9, tzinfo=timezone.utc
    )


def test_find_date_skips_impossible_candidates():
    """31/02 is not a date; the next candidate is used."""
    assert find_date("ref 31/02/25, txn on 01/03/25") == datetime(
        2025, 3, 1, tzinfo=timezone.utc
    )


def test_find_date_returns_none_without_dates():
    assert find_date("account notification only") is None


def test_window_year():
    assert window_year(26) == 2026
    assert window_year(69) == 2069
    assert window_year(70) == 1970
    assert window_year(99) == 1999
    assert window_year(2024) == 2024


# ============================================================================
# AMOUNTS & TEXT
# ============================================================================


def test_parse_amount_handles_grouping_commas():
    assert parse_amount("1,234.50") == 1234.5
    assert parse_amount("1,20,000.00") == 120000.0
    assert parse_amount("") is None
    assert parse_amount(",") is None


def test_html_to_text_keeps_line_structure():
    """Breaks and block tags become newlines; scripts are dropped."""
    html = (
        "<div>Dear Customer,<br><br>Rs.60.00 has been debited</div>"
        "<script>var x = 1;</script><p>Warm   Regards,<br>HDFC Bank</p>"
    )

    assert html_to_text(html) == (
        "Dear Customer,\nRs.60.00 has been debited\nWarm Regards,\nHDFC Bank"
    )


def test_build_search_text_falls_back_to_html(email_factory):
    """An empty text part is replaced by the HTML rendered as text."""
    email = email_factory(
        "msg-1",
        body_text="   ",
        body_html="<p>Rs.290.00 has been debited</p>",
        subject="Alert",
        snippet="preview",
    )

    assert build_search_text(email) == "Alert\nRs.290.00 has been debited\npreview"


def test_build_search_text_prefers_plain_text(email_factory):
    email = email_factory("msg-1", body_text="plain body", body_html="<p>html body</p>", subject="")

    assert build_search_text(email) == "plain body"
