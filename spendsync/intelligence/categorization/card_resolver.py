import json
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

CREDIT_CARDS_FILE = "credit_cards.json"


class CardResolver:
    """Maps card last-4 digits to a friendly card name."""

    def __init__(self, cards: Optional[dict[str, str]] = None):
        self._cards = dict(cards or {})

    @classmethod
    def from_config_dir(cls, config_dir: str) -> "CardResolver":
        path = os.path.join(config_dir, CREDIT_CARDS_FILE)
        if not os.path.exists(path):
            logger.warning(f"Card name mapping not found at {path}, using generic card names")
            return cls()

        with open(path, encoding="utf-8") as f:
            cards = json.load(f)
        return cls({str(last4): name for last4, name in cards.items()})

    def resolve(self, card_last4: Optional[str]) -> Optional[str]:
        if not card_last4:
            return None
        return self._cards.get(card_last4) or f"Card ••{card_last4}"
