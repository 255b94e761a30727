from .keyword_source import (
    ExternalSource,
    JobDescriptionSource,
    KeywordSource,
    StaticSource,
    TaxonomySource,
    normalize_keywords,
    parse_keyword_source,
)
from .models import ATSAnalysisResult, ATSIssue, ATSScore, ATSSuggestion, ReferenceKeywords, TaxonomyEntry
from .scoring import analyze_text
from .taxonomy import TaxonomyStore, load_taxonomy

__all__ = [
    "ATSAnalysisResult",
    "ATSIssue",
    "ATSScore",
    "ATSSuggestion",
    "ReferenceKeywords",
    "TaxonomyEntry",
    "TaxonomyStore",
    "load_taxonomy",
    "KeywordSource",
    "StaticSource",
    "TaxonomySource",
    "ExternalSource",
    "JobDescriptionSource",
    "normalize_keywords",
    "parse_keyword_source",
    "analyze_text",
]
