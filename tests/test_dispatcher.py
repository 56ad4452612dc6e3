"""Tests for capability-based extractor dispatch."""

import pytest

from spendsync.intelligence.extraction.chase import ChaseExtractor
from spendsync.intelligence.extraction.hdfc import HdfcExtractor
from spendsync.intelligence.extraction.router import ExtractorDispatcher


def test_default_order_is_bank_specific_first():
    assert ExtractorDispatcher.default().names == ["hdfc", "icici", "chase"]


def test_routes_each_bank_to_its_extractor(green_choice_email, icici_email, email_factory):
    dispatcher = ExtractorDispatcher.default()
    chase_email = email_factory(
        "msg-chase", subject="Card alert", from_email="alerts@chase.com"
    )

    assert dispatcher.find_extractor(green_choice_email).name == "hdfc"
    assert dispatcher.find_extractor(icici_email).name == "icici"
    assert dispatcher.find_extractor(chase_email).name == "chase"


def test_unknown_sender_has_no_extractor(email_factory):
    email = email_factory(
        "msg-news", subject="Spring sale", from_email="news@shop.example.com"
    )

    assert ExtractorDispatcher.default().find_extractor(email) is None


def test_first_capable_extractor_wins(email_factory):
    """An HDFC subject from a Chase sender goes to whichever is registered first."""
    email = email_factory("msg-1", subject="HDFC card alert", from_email="alerts@chase.com")

    hdfc_first = ExtractorDispatcher([HdfcExtractor(), ChaseExtractor()])
    chase_first = ExtractorDispatcher([ChaseExtractor(), HdfcExtractor()])

    assert hdfc_first.find_extractor(email).name == "hdfc"
    assert chase_first.find_extractor(email).name == "chase"


def test_duplicate_registration_is_rejected():
    with pytest.raises(ValueError):
        ExtractorDispatcher([HdfcExtractor(), HdfcExtractor()])


def test_threshold_is_passed_to_every_extractor(email_factory):
    """A strict threshold applies to whichever extractor handles the email."""
    dispatcher = ExtractorDispatcher.default(confidence_threshold=0.9)
    email = email_factory(
        "msg-1",
        body_text="Rs.500.00 has been debited from your HDFC Bank Credit Card XX9876.",
    )

    extractor = dispatcher.find_extractor(email)

    assert extractor.confidence_threshold == 0.9
    assert extractor.extract_transactions(email) == []
