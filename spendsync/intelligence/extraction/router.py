"""
Capability-based extractor dispatch.

Extractors are consulted in an explicit order; the first whose
``can_parse`` accepts an email handles it. Bank-specific extractors must be
registered ahead of any generic one.
"""

import logging
from typing import Optional, Sequence, Type

from spendsync.integrations.gmail.dto import RawEmailDTO
from spendsync.intelligence.extraction.base import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    BaseExtractor,
)
from spendsync.intelligence.extraction.chase import ChaseExtractor
from spendsync.intelligence.extraction.hdfc import HdfcExtractor
from spendsync.intelligence.extraction.icici import IciciExtractor

logger = logging.getLogger(__name__)

EXTRACTOR_ORDER: tuple[Type[BaseExtractor], ...] = (
    HdfcExtractor,
    IciciExtractor,
    ChaseExtractor,
)


class ExtractorDispatcher:
    def __init__(self, extractors: Sequence[BaseExtractor]):
        names = [extractor.name for extractor in extractors]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate extractor registration: {names}")
        self._extractors = tuple(extractors)

    @classmethod
    def default(
        cls, confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    ) -> "ExtractorDispatcher":
        return cls([extractor_cls(confidence_threshold) for extractor_cls in EXTRACTOR_ORDER])

    @property
    def names(self) -> list[str]:
        return [extractor.name for extractor in self._extractors]

    def find_extractor(self, email: RawEmailDTO) -> Optional[BaseExtractor]:
        for extractor in self._extractors:
            if extractor.can_parse(email):
                return extractor
        logger.debug(f"No extractor for email {email.provider_message_id} from {email.from_email}")
        return None
