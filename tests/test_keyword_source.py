"""Tests for keyword sources."""

import pytest
from pydantic import ValidationError

from bats_server.ats.keyword_source import (
    ExternalSource,
    JobDescriptionSource,
    StaticSource,
    TaxonomySource,
    extract_job_keywords,
    normalize_keywords,
    parse_keyword_source,
)
from bats_server.config import get_settings
from bats_server.errors import NotFound


class TestNormalizeKeywords:
    """Tests for normalize_keywords."""

    def test_collapses_whitespace_and_duplicates(self):
        keywords = [" Machine   Learning ", "machine learning", "", "SQL", "\t"]
        assert normalize_keywords(keywords) == ["Machine Learning", "SQL"]

    def test_first_spelling_kept(self):
        assert normalize_keywords(["sql", "SQL"]) == ["sql"]


class TestSources:
    """Tests for each source's resolve()."""

    def test_static_text(self):
        reference = StaticSource(text="SQL Java sql").resolve()
        assert reference.keywords == ["SQL", "Java"]
        assert reference.source == "static"
        assert reference.tiers == {}

    def test_static_default(self):
        reference = StaticSource().resolve()
        assert reference.keywords == normalize_keywords(get_settings().default_keywords.split())

    def test_taxonomy(self):
        reference = TaxonomySource(category_ids=["qa-testing"], tiers=["required"]).resolve()
        assert len(reference.keywords) == 15
        assert reference.keywords[0] == "Quality Assurance"
        assert set(reference.tiers.values()) == {"required"}
        assert reference.source == "taxonomy"

    def test_taxonomy_all_tiers_by_default(self):
        reference = TaxonomySource(category_ids=["sales"]).resolve()
        assert set(reference.tiers.values()) == {"required", "preferred", "bonus"}

    def test_taxonomy_unknown_category(self):
        with pytest.raises(NotFound):
            TaxonomySource(category_ids=["astronaut"]).resolve()

    def test_taxonomy_needs_categories(self):
        with pytest.raises(ValidationError):
            TaxonomySource(category_ids=[])

    def test_external(self):
        reference = ExternalSource(keywords=[" a ", "A", "b"]).resolve()
        assert reference.keywords == ["a", "b"]
        assert reference.source == "external"

    def test_job_description(self):
        reference = JobDescriptionSource(text="Python developer, AWS").resolve()
        assert reference.keywords == ["python", "aws"]
        assert reference.source == "job_description"


class TestExtractJobKeywords:
    """Tests for extract_job_keywords."""

    def test_technical_experience_and_soft_skills(self):
        text = (
            "We need a Senior Python developer with 5+ years of experience in AWS and "
            "Docker. Strong communication and teamwork."
        )
        assert extract_job_keywords(text) == [
            "python",
            "aws",
            "docker",
            "5+ years of experience",
            "senior",
            "communication",
            "teamwork",
        ]

    def test_symbol_keywords(self):
        found = extract_job_keywords("Backend work in C# on .NET with a CI/CD pipeline")
        assert found == [".net", "ci/cd"]

    def test_short_matches_dropped(self):
        assert extract_job_keywords("JS and Go and TS") == []

    def test_nothing_found(self):
        assert extract_job_keywords("Looking for a friendly baker") == []


class TestParseKeywordSource:
    """Tests for the discriminated union."""

    def test_external(self):
        source = parse_keyword_source({"kind": "external", "keywords": ["x"]})
        assert isinstance(source, ExternalSource)

    def test_taxonomy(self):
        source = parse_keyword_source({"kind": "taxonomy", "category_ids": ["sales"]})
        assert isinstance(source, TaxonomySource)
        assert source.tiers == ["required", "preferred", "bonus"]

    def test_job_description(self):
        source = parse_keyword_source({"kind": "job_description", "text": "python"})
        assert isinstance(source, JobDescriptionSource)

    @pytest.mark.parametrize(
        "payload",
        [
            {"kind": "oracle"},
            {"kind": "taxonomy"},
            {"kind": "taxonomy", "category_ids": ["sales"], "tiers": ["mandatory"]},
            {"keywords": ["no kind"]},
        ],
    )
    def test_invalid(self, payload):
        with pytest.raises(ValidationError):
            parse_keyword_source(payload)
