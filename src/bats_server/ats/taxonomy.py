"""Read-only keyword taxonomy loaded from packaged JSON."""

import json
from functools import lru_cache
from importlib import resources
from pathlib import Path

from pydantic import ValidationError

from ..config import get_settings
from ..errors import LogicError, NotFound, ResourceError
from ..logger import logger
from .models import TIERS, TaxonomyEntry

# Below this role-match confidence the most popular other categories are added
LOW_CONFIDENCE = 0.7
EXTRA_CATEGORIES = 3


class TaxonomyStore:
    """Immutable category -> tiered keyword lookup.

    Safe to share between requests: entries are frozen models and the store
    exposes no mutating operation.
    """

    def __init__(self, entries: list[TaxonomyEntry]):
        ids = [entry.id for entry in entries]
        if len(set(ids)) != len(ids):
            raise LogicError("taxonomy contains duplicate category ids")
        self._entries = tuple(sorted(entries, key=lambda e: (-e.popularity_score, e.id)))
        self._by_id = {entry.id: entry for entry in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def all(self) -> list[TaxonomyEntry]:
        """Every category, most popular first, ties by id."""
        return list(self._entries)

    def exists(self, category_id: str) -> bool:
        return category_id in self._by_id

    def get(self, category_id: str) -> TaxonomyEntry:
        try:
            return self._by_id[category_id]
        except KeyError:
            raise NotFound(f"unknown keyword category: {category_id}") from None

    def search(self, term: str) -> list[TaxonomyEntry]:
        """Categories whose name or a tag contains ``term``, case-insensitive."""
        needle = " ".join(term.split()).casefold()
        if not needle:
            return self.all()
        return [
            entry
            for entry in self._entries
            if needle in entry.name.casefold()
            or any(needle in tag.casefold() for tag in entry.tags)
        ]

    def keywords(self, category_id: str, tiers: tuple[str, ...] | list[str] = TIERS) -> list[str]:
        _check_tiers(tiers)
        return self.get(category_id).keywords.for_tiers(tiers)

    def tier_map(
        self, category_ids: list[str], tiers: tuple[str, ...] | list[str] = TIERS
    ) -> dict[str, str]:
        """casefolded keyword -> tier of its first occurrence."""
        _check_tiers(tiers)
        mapping: dict[str, str] = {}
        for category_id in category_ids:
            entry = self.get(category_id)
            for tier in tiers:
                for keyword in getattr(entry.keywords, tier):
                    mapping.setdefault(keyword.casefold(), tier)
        return mapping

    def combine(
        self, category_ids: list[str], tiers: tuple[str, ...] | list[str] = TIERS
    ) -> list[str]:
        """Union of the categories' keywords, first-seen order, no duplicates.

        Raises:
            NotFound: Any id is unknown.
        """
        combined: list[str] = []
        seen: set[str] = set()
        for category_id in category_ids:
            for keyword in self.keywords(category_id, tiers):
                key = keyword.casefold()
                if key not in seen:
                    seen.add(key)
                    combined.append(keyword)
        return combined

    def recommend_for_role(self, role: str, confidence: float = 0.0) -> list[TaxonomyEntry]:
        """Categories whose role hints occur in ``role``.

        When ``confidence`` is below 0.7 the three most popular remaining
        categories are added.
        """
        text = role.casefold()
        matched = [e for e in self._entries if any(hint in text for hint in e.role_hints)]
        if confidence < LOW_CONFIDENCE:
            matched_ids = {e.id for e in matched}
            extra = [e for e in self._entries if e.id not in matched_ids][:EXTRA_CATEGORIES]
            matched.extend(extra)
        return sorted(matched, key=lambda e: (-e.popularity_score, e.id))


def _check_tiers(tiers: tuple[str, ...] | list[str]) -> None:
    unknown = [tier for tier in tiers if tier not in TIERS]
    if unknown:
        raise NotFound(f"unknown keyword tier(s): {', '.join(unknown)}")


def parse_taxonomy(raw: str) -> TaxonomyStore:
    try:
        payload = json.loads(raw)
        entries = [TaxonomyEntry.model_validate(item) for item in payload["categories"]]
    except (ValueError, KeyError, TypeError, ValidationError) as e:
        raise LogicError(f"invalid taxonomy data: {e}") from e
    return TaxonomyStore(entries)


def _read_taxonomy(path: Path | None) -> str:
    if path is not None:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ResourceError(f"cannot read taxonomy {path}: {e}") from e
    return resources.files("bats_server.ats").joinpath("data/taxonomy.json").read_text(
        encoding="utf-8"
    )


@lru_cache(maxsize=1)
def load_taxonomy() -> TaxonomyStore:
    """The shared taxonomy, loaded on first use."""
    path = get_settings().taxonomy_path
    store = parse_taxonomy(_read_taxonomy(path))
    logger.info("taxonomy loaded", categories=len(store), path=str(path) if path else "packaged")
    return store
