"""Tests for the keyword taxonomy store."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from bats_server.ats.models import KeywordTiers, TaxonomyEntry
from bats_server.ats.taxonomy import TaxonomyStore, _read_taxonomy, load_taxonomy, parse_taxonomy
from bats_server.errors import LogicError, NotFound, ResourceError


@pytest.fixture(scope="module")
def store() -> TaxonomyStore:
    return load_taxonomy()


def entry(category_id: str, popularity: int = 50, **keywords) -> TaxonomyEntry:
    return TaxonomyEntry(
        id=category_id,
        name=category_id.title(),
        popularity_score=popularity,
        keywords=KeywordTiers(**keywords),
    )


class TestPackagedTaxonomy:
    """Tests against the bundled taxonomy data."""

    def test_ten_categories(self, store):
        assert len(store) == 10

    def test_sorted_by_popularity_then_id(self, store):
        ids = [e.id for e in store.all()]
        assert ids[:5] == [
            "software-development",
            "data-science",
            "sales",
            "project-management",
            "qa-testing",
        ]
        scores = [e.popularity_score for e in store.all()]
        assert scores == sorted(scores, reverse=True)

    def test_every_category_has_required_keywords(self, store):
        for category in store.all():
            assert category.keywords.required, category.id

    def test_get(self, store):
        category = store.get("qa-testing")
        assert category.name == "Quality Assurance & Testing"
        assert "Selenium" in category.keywords.preferred

    def test_get_unknown(self, store):
        with pytest.raises(NotFound):
            store.get("astronaut")

    def test_exists(self, store):
        assert store.exists("cybersecurity")
        assert not store.exists("astronaut")

    def test_entries_are_frozen(self, store):
        with pytest.raises(ValidationError):
            store.get("sales").name = "Renamed"

    def test_loaded_once(self):
        assert load_taxonomy() is load_taxonomy()


class TestSearch:
    """Tests for TaxonomyStore.search."""

    def test_matches_tags(self, store):
        assert [e.id for e in store.search("QA")] == ["qa-testing"]

    def test_matches_name(self, store):
        assert [e.id for e in store.search("data science")] == ["data-science"]

    def test_blank_term_returns_all(self, store):
        assert store.search("  ") == store.all()

    def test_no_match(self, store):
        assert store.search("astronaut") == []


class TestKeywords:
    """Tests for keyword lookup and combination."""

    def test_keywords_in_tier_order(self, store):
        keywords = store.keywords("software-development")
        category = store.get("software-development")
        assert keywords == [
            *category.keywords.required,
            *category.keywords.preferred,
            *category.keywords.bonus,
        ]

    def test_tier_filter(self, store):
        assert store.keywords("qa-testing", ["required"]) == list(
            store.get("qa-testing").keywords.required
        )

    def test_unknown_tier(self, store):
        with pytest.raises(NotFound):
            store.keywords("qa-testing", ["mandatory"])

    def test_combine_removes_duplicates(self, store):
        combined = store.combine(["software-development", "data-science"])
        folded = [k.casefold() for k in combined]
        assert len(folded) == len(set(folded))
        assert combined[: len(store.keywords("software-development"))] == store.keywords(
            "software-development"
        )
        assert "Pandas" in combined

    def test_combine_unknown_id(self, store):
        with pytest.raises(NotFound):
            store.combine(["software-development", "astronaut"])

    def test_combine_case_insensitive(self):
        custom = TaxonomyStore(
            [entry("a", required=("SQL", "Python")), entry("b", required=("sql", "Go"))]
        )
        assert custom.combine(["a", "b"]) == ["SQL", "Python", "Go"]

    def test_tier_map_first_occurrence_wins(self, store):
        assert store.tier_map(["data-science"])["aws"] == "bonus"
        assert store.tier_map(["software-development", "data-science"])["aws"] == "preferred"


class TestRecommendations:
    """Tests for recommend_for_role."""

    def test_confident_match(self, store):
        ids = [e.id for e in store.recommend_for_role("Senior Data Scientist", 0.9)]
        assert ids == ["data-science"]

    def test_low_confidence_adds_popular_categories(self, store):
        ids = [e.id for e in store.recommend_for_role("Senior Data Scientist", 0.5)]
        assert ids == ["software-development", "data-science", "sales", "project-management"]

    def test_no_match_low_confidence(self, store):
        ids = [e.id for e in store.recommend_for_role("Astronaut")]
        assert ids == ["software-development", "data-science", "sales"]


class TestLoading:
    """Tests for parsing and reading taxonomy data."""

    def test_duplicate_ids(self):
        with pytest.raises(LogicError):
            TaxonomyStore([entry("a"), entry("a")])

    def test_parse_custom_taxonomy(self):
        raw = json.dumps(
            {"version": 1, "categories": [{"id": "x", "name": "X", "keywords": {"required": ["K"]}}]}
        )
        store = parse_taxonomy(raw)
        assert store.keywords("x") == ["K"]

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "{}",
            '{"categories": [{"name": "missing id"}]}',
            '{"categories": [{"id": "x", "name": "X", "popularity_score": 300}]}',
        ],
    )
    def test_invalid_data(self, raw):
        with pytest.raises(LogicError):
            parse_taxonomy(raw)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResourceError):
            _read_taxonomy(tmp_path / "missing.json")

    def test_reads_file(self, tmp_path):
        path = tmp_path / "taxonomy.json"
        path.write_text('{"categories": []}', encoding="utf-8")
        assert _read_taxonomy(Path(path)) == '{"categories": []}'

    def test_packaged_data(self):
        payload = json.loads(_read_taxonomy(None))
        assert payload["version"] == 1
