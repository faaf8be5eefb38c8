import pytest

from flashsync.domain.exceptions import CatalogUnavailableError
from flashsync.domain.models import Card
from flashsync.infrastructure.adapters.yaml_catalog import (
    StaticCardCatalog,
    YamlCardCatalog,
    parse_cards,
)

CATALOG_YAML = """\
cards:
  - id: c2
    question: "Merci"
    answer: "Thank you"
    question_number: 2
  - id: c1
    question: "Bonjour"
    answer: "Hello"
    question_number: 1
  - id: c0
    question: "Broken"
    answer: "Row"
    question_number: 0
  - question: "No id"
    answer: "Dropped"
  - id: c1
    question: "Duplicate"
    answer: "Ignored"
    question_number: 9
"""


def test_yaml_catalog_loads_valid_cards(tmp_path):
    path = tmp_path / "cards.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    catalog = YamlCardCatalog(path)

    cards = catalog.list_cards()
    assert [c.id for c in cards] == ["c1", "c2"]
    assert cards[0] == Card(id="c1", question="Bonjour", answer="Hello", question_number=1)
    assert catalog.card_ids() == {"c1", "c2"}
    assert cards[1].answer == "Thank you"


def test_missing_catalog_raises_catalog_error(tmp_path):
    catalog = YamlCardCatalog(tmp_path / "nope.yaml")
    with pytest.raises(CatalogUnavailableError):
        catalog.list_cards()


def test_unparseable_catalog_raises_and_retries(tmp_path):
    path = tmp_path / "cards.yaml"
    path.write_text("cards: [unclosed\n", encoding="utf-8")
    catalog = YamlCardCatalog(path)

    with pytest.raises(CatalogUnavailableError):
        catalog.card_ids()

    # A fixed file is picked up on the next call
    path.write_text(CATALOG_YAML, encoding="utf-8")
    assert catalog.card_ids() == {"c1", "c2"}


def test_bare_list_and_default_numbers():
    cards = parse_cards([{"id": "x"}, {"id": "y"}])
    assert [(c.id, c.question_number) for c in cards] == [("x", 1), ("y", 2)]


def test_garbage_documents():
    assert parse_cards(None) == []
    assert parse_cards({"cards": "nope"}) == []
    assert parse_cards({"cards": [1, "two"]}) == []


def test_static_catalog_drops_non_positive_numbers():
    catalog = StaticCardCatalog([Card("b", question_number=2), Card("z", question_number=-1), Card("a")])
    assert [c.id for c in catalog.list_cards()] == ["a", "b"]
