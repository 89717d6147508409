import pytest

from invconsole.models import Product
from invconsole.services.errors import AmbiguityFailure, ResolutionFailure
from invconsole.services.resolver import (
    require,
    resolve,
    resolve_exact,
    resolve_similar,
    similarity_score,
)


def test_numeric_id_resolves_by_primary_key(catalog):
    assert resolve("product", catalog.widget.id).id == catalog.widget.id
    assert resolve("warehouse", str(catalog.east.id)).id == catalog.east.id


def test_missing_numeric_id_is_none_without_fuzzy_fallback(catalog):
    assert resolve("product", 99999) is None
    assert resolve("product", "99999") is None


def test_exact_name_is_case_insensitive_and_repeatable(catalog):
    first = resolve("warehouse", "main warehouse")
    second = resolve("warehouse", "MAIN WAREHOUSE")
    assert first.id == second.id == catalog.main.id


def test_unique_substring_resolves(catalog):
    assert resolve("warehouse", "east").id == catalog.east.id
    assert resolve("supplier", "abc").id == catalog.supplier.id


def test_exact_match_wins_over_substring_hits(catalog, db_session):
    db_session.add(Product(name="Widget Pro", unit_price_cents=2000))
    db_session.commit()
    assert resolve("product", "widget").id == catalog.widget.id


def test_several_substring_hits_raise_ranked_ambiguity(catalog, db_session):
    db_session.add_all([
        Product(name="Mega Widget", unit_price_cents=100),
        Product(name="Widget Pro", unit_price_cents=2000),
    ])
    db_session.commit()

    with pytest.raises(AmbiguityFailure) as excinfo:
        resolve("product", "widg")

    names = [c["name"] for c in excinfo.value.candidates]
    # prefix matches first, then closest length, then id
    assert names == ["Widget", "Widget Pro", "Mega Widget"]
    assert excinfo.value.field == "suggestedProducts"


def test_warehouse_ambiguity_uses_candidates_field(catalog):
    with pytest.raises(AmbiguityFailure) as excinfo:
        resolve("warehouse", "depot")
    assert excinfo.value.field == "candidates"
    assert {c["name"] for c in excinfo.value.candidates} == {"East Depot", "West Depot"}


def test_like_wildcards_are_escaped(catalog):
    assert resolve("product", "%") is None
    assert resolve("product", "_") is None


def test_exact_variant_skips_substring(catalog):
    assert resolve_exact("product", "widg") is None
    assert resolve_exact("product", "WIDGET").id == catalog.widget.id


def test_blank_and_none_identifiers(catalog):
    assert resolve("product", None) is None
    assert resolve("product", "   ") is None


def test_require_names_the_missing_reference(catalog):
    with pytest.raises(ResolutionFailure) as excinfo:
        require("warehouse", "Narnia", label="destination warehouse")
    assert str(excinfo.value) == "Could not find destination warehouse: Narnia"
    assert excinfo.value.kind == "resolution"


def test_similarity_score_counts_words_and_first_word():
    assert similarity_score("Widget Pro", ["widget"]) == 2
    assert similarity_score("Bolt", ["boltcutter"]) == 1
    assert similarity_score("Bolt", ["gadget"]) == 0


def test_similar_products_ranked_and_capped(catalog, db_session):
    db_session.add_all([Product(name=f"Widget {n}", unit_price_cents=100) for n in range(8)])
    db_session.commit()

    similar = resolve_similar("product", "blue widget")
    assert len(similar) == 5
    assert similar[0].name == "Widget"
    assert [p.id for p in similar] == sorted(p.id for p in similar)


def test_similar_ignores_short_words(catalog):
    assert resolve_similar("product", "a an of") == []
