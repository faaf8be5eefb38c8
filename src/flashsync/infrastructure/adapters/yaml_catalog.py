"""
YAML card catalog.

Expected document shape:

    cards:
      - id: 3f0c...
        question: "Bonjour"
        answer: "Hello"
        question_number: 1

A bare top-level list of cards is accepted too.
"""

import logging
from pathlib import Path

import yaml

from flashsync.domain.exceptions import CatalogUnavailableError
from flashsync.domain.models import Card
from flashsync.domain.ports import CardCatalog

logger = logging.getLogger(__name__)


def parse_cards(data: object) -> list[Card]:
    """
    Build catalog cards from decoded YAML.

    Entries without an id, or whose question_number is not a positive
    integer, are dropped with a warning. Duplicate ids keep the first entry.
    """
    rows = data.get("cards", []) if isinstance(data, dict) else data
    if not isinstance(rows, list):
        return []

    cards: dict[str, Card] = {}
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            continue

        card_id = row.get("id")
        if card_id is None or str(card_id).strip() == "":
            logger.warning(f"Catalog entry #{index} has no id; skipping")
            continue
        card_id = str(card_id).strip()

        number = row.get("question_number", index + 1)
        if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
            logger.warning(f"Card {card_id} has invalid question_number {number!r}; skipping")
            continue

        if card_id in cards:
            continue
        cards[card_id] = Card(
            id=card_id,
            question=str(row.get("question") or "").strip(),
            answer=str(row.get("answer") or "").strip(),
            question_number=number,
        )

    return sorted(cards.values(), key=lambda c: (c.question_number, c.id))


class YamlCardCatalog(CardCatalog):
    """Loads cards from a YAML file once, on first use."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._cards: list[Card] | None = None

    def list_cards(self) -> list[Card]:
        if self._cards is None:
            try:
                with open(self.path, encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Could not load catalog {self.path}: {e}", exc_info=True)
                raise CatalogUnavailableError(f"Could not load card catalog {self.path}: {e}") from e
            self._cards = parse_cards(data)
            logger.info(f"Loaded {len(self._cards)} cards from {self.path}")
        return list(self._cards)


class StaticCardCatalog(CardCatalog):
    """Catalog over an in-memory list of cards."""

    def __init__(self, cards: list[Card]):
        valid = []
        for card in cards:
            if card.question_number <= 0:
                logger.warning(
                    f"Card {card.id} has invalid question_number {card.question_number!r}; skipping"
                )
                continue
            valid.append(card)
        self._cards = sorted(valid, key=lambda c: (c.question_number, c.id))

    def list_cards(self) -> list[Card]:
        return list(self._cards)
