"""Keyword sources: every way of producing a reference keyword list.

The embedder and the scorer only ever see the ``ReferenceKeywords`` a source
resolves to, never the source itself.
"""

import re
from typing import Annotated, Iterable, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from ..config import get_settings
from .models import TIERS, ReferenceKeywords
from .taxonomy import load_taxonomy

# Job-description keywords of this length or shorter are dropped
MIN_EXTRACTED_LENGTH = 2

TECH_PATTERNS = [
    r"(?<!\w)(javascript|js|typescript|ts|react|angular|vue|node\.?js|python|java|c#|\.net|php|ruby|go|rust|swift|kotlin)(?!\w)",
    r"(?<!\w)(html|css|scss|sass|less|bootstrap|tailwind)(?!\w)",
    r"(?<!\w)(sql|mysql|postgresql|mongodb|redis|elasticsearch)(?!\w)",
    r"(?<!\w)(aws|azure|gcp|docker|kubernetes|jenkins|ci/cd|devops)(?!\w)",
    r"(?<!\w)(git|github|gitlab|bitbucket|svn)(?!\w)",
    r"(?<!\w)(agile|scrum|kanban|jira|confluence)(?!\w)",
    r"(?<!\w)(api|rest|graphql|microservices|serverless)(?!\w)",
    r"(?<!\w)(testing|unit\s+testing|integration\s+testing|e2e|selenium|cypress)(?!\w)",
]

EXPERIENCE_PATTERNS = [
    r"(\d+)\+?\s*years?\s*(of\s*)?(experience|exp)",
    r"(junior|senior|lead|principal|staff|entry\s*level)",
    r"(bachelor|master|phd|degree)",
    r"(internship|entry\s*level|graduate)",
]

SOFT_SKILLS = [
    "communication",
    "leadership",
    "teamwork",
    "problem solving",
    "analytical",
    "creative",
    "detail oriented",
    "self motivated",
    "adaptable",
    "collaborative",
]


def normalize_keywords(keywords: Iterable[str]) -> list[str]:
    """Collapse whitespace, drop empties and case-insensitive duplicates.

    First-seen order and spelling are kept.
    """
    result: list[str] = []
    seen: set[str] = set()
    for keyword in keywords:
        cleaned = " ".join(str(keyword).split())
        key = cleaned.casefold()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


def extract_job_keywords(job_description: str) -> list[str]:
    """Technical, experience-level and soft-skill keywords found in a job ad."""
    text = job_description.lower()
    found: list[str] = []
    for pattern in TECH_PATTERNS + EXPERIENCE_PATTERNS:
        found.extend(m.group(0).strip() for m in re.finditer(pattern, text))
    found.extend(skill for skill in SOFT_SKILLS if skill in text)
    return [k for k in normalize_keywords(found) if len(k) > MIN_EXTRACTED_LENGTH]


class StaticSource(BaseModel):
    """The configured default keyword string, split on whitespace."""

    kind: Literal["static"] = "static"
    text: str | None = None

    def resolve(self) -> ReferenceKeywords:
        text = self.text if self.text is not None else get_settings().default_keywords
        return ReferenceKeywords(keywords=normalize_keywords(text.split()), source=self.kind)


class TaxonomySource(BaseModel):
    kind: Literal["taxonomy"] = "taxonomy"
    category_ids: list[str] = Field(min_length=1)
    tiers: list[Literal["required", "preferred", "bonus"]] = Field(
        default_factory=lambda: list(TIERS)
    )

    def resolve(self) -> ReferenceKeywords:
        store = load_taxonomy()
        keywords = normalize_keywords(store.combine(self.category_ids, self.tiers))
        return ReferenceKeywords(
            keywords=keywords,
            tiers=store.tier_map(self.category_ids, self.tiers),
            source=self.kind,
        )


class ExternalSource(BaseModel):
    """A keyword list computed elsewhere, e.g. by an AI service."""

    kind: Literal["external"] = "external"
    keywords: list[str] = Field(default_factory=list)

    def resolve(self) -> ReferenceKeywords:
        return ReferenceKeywords(keywords=normalize_keywords(self.keywords), source=self.kind)


class JobDescriptionSource(BaseModel):
    kind: Literal["job_description"] = "job_description"
    text: str

    def resolve(self) -> ReferenceKeywords:
        return ReferenceKeywords(keywords=extract_job_keywords(self.text), source=self.kind)


KeywordSource = Annotated[
    Union[StaticSource, TaxonomySource, ExternalSource, JobDescriptionSource],
    Field(discriminator="kind"),
]

keyword_source_adapter = TypeAdapter(KeywordSource)


def parse_keyword_source(payload: dict) -> KeywordSource:
    """Validate a ``{"kind": ...}`` mapping into the matching source."""
    return keyword_source_adapter.validate_python(payload)
