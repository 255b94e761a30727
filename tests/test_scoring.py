"""Tests for ATS scoring."""

from datetime import datetime, timedelta, timezone

import pytest

from bats_server.ats.models import ReferenceKeywords
from bats_server.ats.scoring import (
    KEYWORD_CLUSTER_SIZE,
    SECTIONS,
    analyze_text,
    build_suggestions,
    detect_issues,
    format_timestamp,
    formatting_score,
    grade_for,
    keyword_density,
    keyword_match_score,
    match_keywords,
    overall_score,
    readability_score,
)

GOOD_RESUME = """Jane Doe
jane.doe@example.com | +1 555 123 4567
Experience
Senior Software Engineer, Acme Corp, 2019 - Present
- Led a team of five engineers building payment services in Python.
- Designed and delivered a data pipeline processing two million events per day.
- Reduced deployment time by automating releases with Jenkins and Docker.
Software Engineer, Beta Labs, 2015 - 2019
- Developed REST APIs used by three mobile applications.
- Improved test coverage and mentored two junior developers.
Education
Bachelor of Science in Computer Science, State University, 2011 - 2015
Skills
Python, SQL, Docker, Kubernetes, AWS, Git
"""

TEN_KEYWORDS = [
    "Python", "SQL", "Docker", "Kubernetes", "AWS", "Git",
    "Java", "Terraform", "React", "Scala",
]


def fixed_clock():
    return datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def reference(keywords, tiers=None):
    return ReferenceKeywords(keywords=keywords, tiers=tiers or {}, source="external")


def issue_types(text):
    return [issue.type for issue in detect_issues(text)]


class TestKeywordMatch:
    """Tests for match_keywords and keyword_match_score."""

    def test_partition_in_reference_order(self):
        found, missing = match_keywords("I write python and sql", ["SQL", "Java", "Python"])
        assert found == ["SQL", "Python"]
        assert missing == ["Java"]

    def test_whitespace_and_case_normalized(self):
        found, _ = match_keywords("MACHINE\n  learning", ["Machine Learning"])
        assert found == ["Machine Learning"]

    def test_blank_keyword_never_found(self):
        assert match_keywords("anything", ["  "]) == ([], ["  "])

    def test_empty_reference_scores_full(self):
        assert keyword_match_score(0, 0) == 100

    @pytest.mark.parametrize(
        "found, total, expected",
        [(6, 10, 60), (1, 3, 33), (2, 3, 67), (1, 8, 13), (0, 5, 0), (5, 5, 100)],
    )
    def test_rounding_half_up(self, found, total, expected):
        assert keyword_match_score(found, total) == expected

    def test_monotonic_in_found_keywords(self):
        keywords = TEN_KEYWORDS
        scores = []
        for n in range(len(keywords) + 1):
            found, _ = match_keywords(" ".join(keywords[:n]), keywords)
            scores.append(keyword_match_score(len(found), len(keywords)))
        assert scores == sorted(scores)
        assert scores[0] == 0
        assert scores[-1] == 100


class TestOverallAndGrade:
    """Tests for overall_score and grade_for."""

    def test_weighted_half_up(self):
        assert overall_score(60, 80, 90) == 73
        assert overall_score(100, 100, 100) == 100
        assert overall_score(0, 0, 0) == 0

    @pytest.mark.parametrize(
        "overall, grade",
        [
            (100, "A"), (90, "A"), (89, "B"), (75, "B"), (74, "C"),
            (60, "C"), (59, "D"), (40, "D"), (39, "F"), (0, "F"),
        ],
    )
    def test_grade_boundaries(self, overall, grade):
        assert grade_for(overall)[0] == grade

    def test_grade_descriptions(self):
        assert grade_for(95)[1].startswith("Excellent")
        assert grade_for(10)[1].startswith("Very poor")


class TestIssues:
    """Tests for detect_issues and formatting_score."""

    def test_complete_resume_has_no_issues(self):
        assert detect_issues(GOOD_RESUME) == []
        assert formatting_score(GOOD_RESUME) == 100

    def test_empty_text(self):
        assert issue_types("") == ["no_text"]
        assert issue_types("  \n ") == ["no_text"]
        assert formatting_score("") == 0

    def test_fixed_order(self):
        assert issue_types("hello") == [
            "near_empty",
            "missing_contact",
            "missing_dates",
            "missing_section",
            "missing_section",
            "missing_section",
            "missing_bullets",
        ]

    def test_penalties_floor_at_zero(self):
        assert formatting_score("hello") == 0

    def test_section_locations(self):
        locations = [i.location for i in detect_issues("Experience only") if i.type == "missing_section"]
        assert locations == ["education", "skills"]

    def test_phone_counts_as_contact(self):
        assert "missing_contact" not in issue_types("Call +1 (555) 123-4567")

    def test_date_range_is_not_a_phone(self):
        types = issue_types("Acme Corp 2019 - 2021")
        assert "missing_contact" in types
        assert "missing_dates" not in types

    def test_garbled_text(self):
        assert "garbled_text" in issue_types("\x01\x02\x03 abc")

    def test_unmappable_characters(self):
        assert "unmappable_characters" in issue_types("caf� latte")

    def test_too_long(self):
        assert issue_types("word " * 1201)[-1] == "too_long"

    def test_numbered_bullets(self):
        assert "missing_bullets" not in issue_types("1. Shipped the product")


class TestReadability:
    """Tests for readability_score and keyword_density."""

    def test_clean_text(self):
        assert readability_score(GOOD_RESUME, TEN_KEYWORDS) == 100

    def test_empty_text(self):
        assert readability_score("", TEN_KEYWORDS) == 0

    def test_keyword_stuffing(self):
        text = "Python SQL Docker " * 30
        assert keyword_density(text, ["Python", "SQL", "Docker"]) == 1.0
        assert readability_score(text, ["Python", "SQL", "Docker"]) == 20

    def test_density_counts_whole_phrases(self):
        assert keyword_density("machine learning and more", ["Machine Learning"]) == 0.5

    def test_density_of_empty_text(self):
        assert keyword_density("", ["x"]) == 0.0

    def test_missing_action_verbs(self):
        text = "Experience. Education. Skills."
        assert readability_score(text, []) == 95


class TestSuggestions:
    """Tests for build_suggestions."""

    def test_keyword_clusters(self):
        missing = [f"kw{i}" for i in range(23)]
        suggestions = build_suggestions(missing, {}, [])
        assert [len(s.keywords) for s in suggestions] == [10, 10, 3]
        assert all(s.title == "Add Missing Keywords" for s in suggestions)
        assert all(s.priority == "high" for s in suggestions)
        assert suggestions[0].keywords == missing[:KEYWORD_CLUSTER_SIZE]

    def test_tiers_set_priority(self):
        tiers = {"rust": "bonus", "python": "required", "sql": "preferred"}
        suggestions = build_suggestions(["Rust", "Python", "SQL"], tiers, [])
        assert [(s.priority, s.keywords) for s in suggestions] == [
            ("high", ["Python"]),
            ("medium", ["SQL"]),
            ("low", ["Rust"]),
        ]
        assert suggestions[0].title == "Add Missing Required Keywords"

    def test_issue_suggestions(self):
        issues = detect_issues("Experience Education only, no skills listed")
        suggestions = build_suggestions([], {}, issues)
        contact = next(s for s in suggestions if s.type == "contact")
        assert contact.priority == "high"
        assert all(s.type in ("contact", "format") for s in suggestions)

    def test_missing_section_suggestion(self):
        issues = [i for i in detect_issues("Experience Education") if i.type == "missing_section"]
        (suggestion,) = build_suggestions([], {}, issues)
        assert suggestion.title == "Add Skills Section"
        assert suggestion.keywords == SECTIONS["skills"][1]
        assert suggestion.priority == "medium"

    def test_sorted_by_priority(self):
        suggestions = build_suggestions(["Rust"], {"rust": "bonus"}, detect_issues("hello"))
        ranks = {"high": 0, "medium": 1, "low": 2}
        assert [ranks[s.priority] for s in suggestions] == sorted(
            ranks[s.priority] for s in suggestions
        )
        assert suggestions[-1].priority == "low"


class TestAnalyzeText:
    """Tests for analyze_text."""

    def test_six_of_ten_keywords(self):
        result = analyze_text(GOOD_RESUME, reference(TEN_KEYWORDS), now=fixed_clock)
        assert result.score.keyword_match == 60
        assert result.score.formatting == 100
        assert result.score.readability == 100
        assert result.score.overall == 80
        assert result.score.grade == "B"
        assert result.found_keywords == TEN_KEYWORDS[:6]
        assert result.missing_keywords == TEN_KEYWORDS[6:]

    def test_empty_reference(self):
        result = analyze_text(GOOD_RESUME, reference([]), now=fixed_clock)
        assert result.score.keyword_match == 100
        assert result.found_keywords == []
        assert result.missing_keywords == []

    def test_empty_text(self):
        result = analyze_text("", reference(TEN_KEYWORDS), now=fixed_clock)
        assert result.score.keyword_match == 0
        assert result.score.formatting == 0
        assert result.score.readability == 0
        assert result.score.overall == 0
        assert result.score.grade == "F"
        assert result.word_count == 0
        assert [i.type for i in result.issues] == ["no_text"]

    def test_invisible_text_only_affects_keyword_match(self):
        hidden = GOOD_RESUME + " Java Terraform React Scala"
        result = analyze_text(hidden, reference(TEN_KEYWORDS), visible_text=GOOD_RESUME, now=fixed_clock)
        assert result.score.keyword_match == 100
        assert result.score.formatting == 100
        assert result.word_count == len(GOOD_RESUME.split())

    def test_keyword_layer_without_visible_text(self):
        result = analyze_text(
            "SQL Java", reference(["SQL", "Java"]), visible_text="", now=fixed_clock
        )
        assert result.score.keyword_match == 100
        assert result.score.formatting == 0
        assert result.score.readability == 0
        assert result.score.overall == 50

    def test_deterministic(self):
        first = analyze_text(GOOD_RESUME, reference(TEN_KEYWORDS), now=fixed_clock)
        second = analyze_text(GOOD_RESUME, reference(TEN_KEYWORDS), now=fixed_clock)
        assert first.model_dump() == second.model_dump()

    def test_only_date_depends_on_clock(self):
        def later():
            return fixed_clock() + timedelta(days=1)

        first = analyze_text(GOOD_RESUME, reference(TEN_KEYWORDS), now=fixed_clock)
        second = analyze_text(GOOD_RESUME, reference(TEN_KEYWORDS), now=later)
        assert first.analysis_date == "2026-01-02T03:04:05Z"
        assert second.analysis_date == "2026-01-03T03:04:05Z"
        assert first.model_dump(exclude={"analysis_date"}) == second.model_dump(
            exclude={"analysis_date"}
        )

    def test_keyword_source_recorded(self):
        ref = ReferenceKeywords(keywords=["SQL"], source="taxonomy")
        assert analyze_text("SQL", ref, now=fixed_clock).keyword_source == "taxonomy"

    def test_timestamp_converted_to_utc(self):
        moment = datetime(2026, 1, 2, 5, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(moment) == "2026-01-02T03:00:00Z"
