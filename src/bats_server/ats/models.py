from pydantic import BaseModel, ConfigDict, Field

TIERS = ("required", "preferred", "bonus")
PRIORITIES = ("high", "medium", "low")


class KeywordTiers(BaseModel):
    model_config = ConfigDict(frozen=True)

    required: tuple[str, ...] = ()
    preferred: tuple[str, ...] = ()
    bonus: tuple[str, ...] = ()

    def for_tiers(self, tiers: tuple[str, ...] | list[str] = TIERS) -> list[str]:
        keywords: list[str] = []
        for tier in tiers:
            keywords.extend(getattr(self, tier))
        return keywords


class TaxonomyEntry(BaseModel):
    """One job category and its tiered keywords. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    tags: tuple[str, ...] = ()
    popularity_score: int = Field(default=0, ge=0, le=100)
    role_hints: tuple[str, ...] = ()
    keywords: KeywordTiers = Field(default_factory=KeywordTiers)


class ReferenceKeywords(BaseModel):
    """Ordered reference keyword set plus the tier each keyword came from."""

    keywords: list[str] = Field(default_factory=list)
    tiers: dict[str, str] = Field(default_factory=dict)
    source: str = "external"


class ATSScore(BaseModel):
    overall: int = Field(ge=0, le=100)
    keyword_match: int = Field(ge=0, le=100)
    formatting: int = Field(ge=0, le=100)
    readability: int = Field(ge=0, le=100)
    grade: str
    description: str


class ATSIssue(BaseModel):
    type: str
    severity: str
    description: str
    location: str = "document"


class ATSSuggestion(BaseModel):
    type: str
    priority: str
    title: str
    description: str
    keywords: list[str] = Field(default_factory=list)


class ATSAnalysisResult(BaseModel):
    score: ATSScore
    found_keywords: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)
    suggestions: list[ATSSuggestion] = Field(default_factory=list)
    issues: list[ATSIssue] = Field(default_factory=list)
    keyword_source: str = "external"
    word_count: int = 0
    analysis_date: str
