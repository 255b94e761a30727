"""Deterministic ATS scoring.

Sub-scores:

    KeywordMatch  share of reference keywords whose normalized phrase occurs
                  in the normalized document text, rounded half up
    Formatting    100 minus the penalties of the structural issues detected
                  in the visible text
    Readability   100 minus penalties for keyword stuffing and extreme
                  sentence or line lengths, visible text only

Overall is ``round_half_up(0.5*K + 0.25*F + 0.25*R)``. Every computation is
integer or order-stable so identical inputs give identical results; the only
time-dependent field is ``analysis_date``, taken from an injectable clock.
"""

import re
import unicodedata
from datetime import datetime, timezone
from typing import Callable

from ..logger import logger
from .models import (
    ATSAnalysisResult,
    ATSIssue,
    ATSScore,
    ATSSuggestion,
    ReferenceKeywords,
)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

NEAR_EMPTY_WORDS = 50
MAX_WORDS = 1200
GARBLED_RATIO = 0.10
KEYWORD_CLUSTER_SIZE = 10

# (minimum density, penalty), checked in order
DENSITY_PENALTIES = ((0.5, 40), (0.35, 25), (0.2, 10))
LONG_AVERAGE_SENTENCE = 25
LONG_SENTENCE = 60
LONG_LINE = 40
LONG_LINE_SHARE = 0.25
COMPLEX_WORD_LENGTH = 12
COMPLEX_WORD_SHARE = 0.15

GRADES = (
    (90, "A", "Excellent ATS compatibility! Your resume should pass most ATS filters."),
    (75, "B", "Good ATS compatibility with minor room for improvement."),
    (60, "C", "Fair ATS compatibility. Consider adding more relevant keywords."),
    (40, "D", "Poor ATS compatibility. Significant improvements needed."),
    (0, "F", "Very poor ATS compatibility. Major restructuring recommended."),
)

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}
TIER_PRIORITY = {"required": "high", "preferred": "medium", "bonus": "low", None: "high"}
TIER_ORDER = ("required", "preferred", "bonus", None)

ACTION_VERBS = (
    "managed", "led", "developed", "created", "implemented", "achieved", "improved",
    "designed", "built", "delivered", "launched", "optimized", "reduced", "increased",
    "automated", "coordinated", "analyzed", "mentored", "established", "streamlined",
)

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(?<!\w)\+?\(?\d[\d\s().-]{6,}\d(?!\w)")
_YEAR = r"(?:19|20)\d{2}"
DATE_RANGE_RE = re.compile(
    rf"\b{_YEAR}\s*(?:-|–|—|to|until)\s*"
    rf"(?:(?:[a-z]{{3,9}}\.?\s+|\d{{1,2}}/)?{_YEAR}|present|current|now|today)\b",
    re.IGNORECASE,
)
BULLET_RE = re.compile(r"^\s*(?:[•●▪◦‣∙·\-*–]|\d{1,2}[.)])\s+\S", re.MULTILINE)
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")

SECTIONS = {
    "experience": (("experience", "work history", "employment"),
                   ["Experience", "Work History", "Professional Experience"]),
    "education": (("education", "degree"), ["Education", "Degree", "Certification"]),
    "skills": (("skills", "technical", "competencies"),
               ["Skills", "Technical Skills", "Core Competencies"]),
}

# issue type -> (severity, penalty, suggestion title, suggestion text)
ISSUE_RULES = {
    "no_text": (
        "high", 100, "Make the Text Extractable",
        "Export the resume from a word processor instead of scanning or flattening it to images.",
    ),
    "near_empty": (
        "high", 40, "Add More Content",
        "Describe your experience, education and skills in full sentences and bullet points.",
    ),
    "missing_contact": (
        "high", 20, "Add Contact Information",
        "Put an email address and a phone number at the top of the resume.",
    ),
    "garbled_text": (
        "high", 25, "Fix Unreadable Text",
        "Use standard fonts and re-export the document so its text can be read back.",
    ),
    "missing_dates": (
        "medium", 15, "Add Employment Dates",
        "Give each position a date range such as 2019 - 2023 or 2021 - Present.",
    ),
    "missing_section": (
        "medium", 5, "Add Standard Sections",
        "ATS systems look for clearly labelled standard sections.",
    ),
    "missing_bullets": (
        "low", 10, "Use Bullet Points",
        "List achievements as bullet points so they are parsed as separate items.",
    ),
    "unmappable_characters": (
        "low", 5, "Replace Special Characters",
        "Some characters could not be mapped to text; prefer standard fonts and symbols.",
    ),
    "too_long": (
        "low", 5, "Shorten the Resume",
        "Keep the resume focused; two pages is enough for most roles.",
    ),
}


def normalize(text: str) -> str:
    """Case-fold and collapse every whitespace run to one space."""
    return " ".join(text.casefold().split())


def match_keywords(text: str, keywords: list[str]) -> tuple[list[str], list[str]]:
    """Partition ``keywords`` into (found, missing), both in reference order."""
    haystack = normalize(text)
    found: list[str] = []
    missing: list[str] = []
    for keyword in keywords:
        needle = normalize(keyword)
        (found if needle and needle in haystack else missing).append(keyword)
    return found, missing


def keyword_match_score(found: int, total: int) -> int:
    if total == 0:
        return 100
    return min(100, max(0, (200 * found + total) // (2 * total)))


def overall_score(keyword_match: int, formatting: int, readability: int) -> int:
    # floor((2K + F + R) / 4 + 0.5) in integer arithmetic
    return min(100, max(0, (2 * keyword_match + formatting + readability + 2) // 4))


def grade_for(overall: int) -> tuple[str, str]:
    for threshold, grade, description in GRADES:
        if overall >= threshold:
            return grade, description
    return GRADES[-1][1], GRADES[-1][2]


def _issue(kind: str, description: str, location: str = "document") -> ATSIssue:
    return ATSIssue(type=kind, severity=ISSUE_RULES[kind][0], description=description, location=location)


def _garbled_ratio(text: str) -> float:
    chars = [c for c in text if not c.isspace()]
    if not chars:
        return 0.0
    bad = sum(1 for c in chars if unicodedata.category(c) in ("Cc", "Co", "Cn"))
    return bad / len(chars)


def _has_phone(text: str) -> bool:
    for match in PHONE_RE.finditer(text):
        digits = sum(c.isdigit() for c in match.group(0))
        if 9 <= digits <= 15:
            return True
    return False


def detect_issues(text: str) -> list[ATSIssue]:
    """Structural problems of the visible text, in a fixed order."""
    words = text.split()
    if not words:
        return [_issue("no_text", "No extractable text was found; the document may be image-only")]

    lowered = text.casefold()
    issues: list[ATSIssue] = []
    if len(words) < NEAR_EMPTY_WORDS:
        issues.append(
            _issue("near_empty", f"Only {len(words)} words could be extracted from the document")
        )
    if _garbled_ratio(text) > GARBLED_RATIO:
        issues.append(_issue("garbled_text", "Much of the extracted text is unreadable control data", "text"))
    if not EMAIL_RE.search(text) and not _has_phone(text):
        issues.append(_issue("missing_contact", "No email address or phone number found", "header"))
    if not DATE_RANGE_RE.search(text):
        issues.append(_issue("missing_dates", "No date ranges found to describe work history", "experience"))
    for section, (markers, _) in SECTIONS.items():
        if not any(marker in lowered for marker in markers):
            issues.append(_issue("missing_section", f"No '{section.title()}' section found", section))
    if not BULLET_RE.search(text):
        issues.append(_issue("missing_bullets", "No bullet-point lines found"))
    if "�" in text:
        issues.append(_issue("unmappable_characters", "Some characters could not be mapped to text", "text"))
    if len(words) > MAX_WORDS:
        issues.append(_issue("too_long", f"The document has {len(words)} words"))
    return issues


def formatting_score(text: str, issues: list[ATSIssue] | None = None) -> int:
    if not text.split():
        return 0
    if issues is None:
        issues = detect_issues(text)
    penalty = sum(ISSUE_RULES[issue.type][1] for issue in issues)
    return min(100, max(0, 100 - penalty))


def keyword_density(text: str, keywords: list[str]) -> float:
    """Share of the words of ``text`` that are occurrences of ``keywords``."""
    haystack = normalize(text)
    total = len(haystack.split())
    if not total:
        return 0.0
    covered = 0
    for keyword in keywords:
        needle = normalize(keyword)
        if not needle:
            continue
        hits = len(re.findall(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack))
        covered += hits * len(needle.split())
    return min(1.0, covered / total)


def readability_score(text: str, keywords: list[str]) -> int:
    """Readability of the visible text; 0 when there is none."""
    words = text.split()
    if not words:
        return 0
    score = 100

    density = keyword_density(text, keywords)
    for threshold, penalty in DENSITY_PENALTIES:
        if density > threshold:
            score -= penalty
            break

    sentences = [s.split() for s in SENTENCE_SPLIT_RE.split(text)]
    sentences = [s for s in sentences if s]
    if sentences:
        lengths = [len(s) for s in sentences]
        if sum(lengths) / len(lengths) > LONG_AVERAGE_SENTENCE:
            score -= 15
        if max(lengths) > LONG_SENTENCE:
            score -= 10

    lines = [line.split() for line in text.splitlines() if line.strip()]
    if lines and sum(1 for line in lines if len(line) > LONG_LINE) / len(lines) > LONG_LINE_SHARE:
        score -= 10

    bare = [w.strip(".,;:!?()[]\"'") for w in words]
    complex_words = sum(1 for w in bare if len(w) > COMPLEX_WORD_LENGTH and w.isalpha())
    if complex_words / len(words) > COMPLEX_WORD_SHARE:
        score -= 10

    lowered = normalize(text)
    if not any(re.search(rf"\b{verb}\b", lowered) for verb in ACTION_VERBS):
        score -= 5

    return min(100, max(0, score))


def build_suggestions(
    missing: list[str], tiers: dict[str, str], issues: list[ATSIssue]
) -> list[ATSSuggestion]:
    """Keyword-cluster and issue suggestions, high priority first."""
    suggestions: list[ATSSuggestion] = []

    groups: dict[str | None, list[str]] = {tier: [] for tier in TIER_ORDER}
    for keyword in missing:
        tier = tiers.get(keyword.casefold())
        groups[tier if tier in groups else None].append(keyword)
    for tier in TIER_ORDER:
        group = groups[tier]
        label = f"{tier} " if tier else ""
        for start in range(0, len(group), KEYWORD_CLUSTER_SIZE):
            chunk = group[start : start + KEYWORD_CLUSTER_SIZE]
            suggestions.append(
                ATSSuggestion(
                    type="keywords",
                    priority=TIER_PRIORITY[tier],
                    title=f"Add Missing {label.title()}Keywords",
                    description=(
                        f"Your resume is missing {len(group)} {label}keywords that ATS systems "
                        f"look for; start with these {len(chunk)}."
                    ),
                    keywords=chunk,
                )
            )

    for issue in issues:
        severity, _, title, text = ISSUE_RULES[issue.type]
        keywords: list[str] = []
        if issue.type == "missing_section":
            keywords = SECTIONS[issue.location][1]
            title = f"Add {issue.location.title()} Section"
        suggestions.append(
            ATSSuggestion(
                type="format" if issue.type != "missing_contact" else "contact",
                priority=severity,
                title=title,
                description=f"{issue.description}. {text}",
                keywords=keywords,
            )
        )

    return sorted(suggestions, key=lambda s: PRIORITY_RANK[s.priority])


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def analyze_text(
    text: str,
    reference: ReferenceKeywords,
    visible_text: str | None = None,
    now: Callable[[], datetime] | None = None,
) -> ATSAnalysisResult:
    """Score ``text`` against ``reference``.

    Args:
        text: Full extracted text, used for keyword matching.
        reference: The reference keyword set and its tiers.
        visible_text: Text with invisible runs removed; formatting and
            readability are computed on it. Defaults to ``text``.
        now: Clock for ``analysis_date``; defaults to the current UTC time.

    Returns:
        The analysis record. Everything except ``analysis_date`` depends
        only on the inputs.
    """
    if visible_text is None:
        visible_text = text
    keywords = reference.keywords

    found, missing = match_keywords(text, keywords)
    issues = detect_issues(visible_text)
    keyword_match = keyword_match_score(len(found), len(keywords))
    formatting = formatting_score(visible_text, issues)
    readability = readability_score(visible_text, keywords)
    overall = overall_score(keyword_match, formatting, readability)
    grade, description = grade_for(overall)

    logger.debug(
        "ats analysis complete",
        overall=overall,
        keyword_match=keyword_match,
        formatting=formatting,
        readability=readability,
        found=len(found),
        missing=len(missing),
        issues=len(issues),
    )

    return ATSAnalysisResult(
        score=ATSScore(
            overall=overall,
            keyword_match=keyword_match,
            formatting=formatting,
            readability=readability,
            grade=grade,
            description=description,
        ),
        found_keywords=found,
        missing_keywords=missing,
        suggestions=build_suggestions(missing, reference.tiers, issues),
        issues=issues,
        keyword_source=reference.source,
        word_count=len(visible_text.split()),
        analysis_date=format_timestamp((now or _utc_now)()),
    )
