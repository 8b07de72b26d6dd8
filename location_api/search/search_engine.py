import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from location_api.models import LocationRecord, Suggestion
from .errors import InvalidArgument
from .location_store import LocationStore
from .rules import (
    POPULAR_CITY_NAMES,
    REGION_SEPARATOR,
    Locale,
    is_numeric,
    normalize_key,
    type_label,
)

logger = logging.getLogger(__name__)


def _check_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")


def extract_region(parent_region: str) -> str:
    """'Ville - Basel-Stadt' -> 'Basel-Stadt'; no separator -> ''."""
    if REGION_SEPARATOR not in parent_region:
        return ""
    return parent_region.rsplit(REGION_SEPARATOR, 1)[-1]


def format_suggestion(record: LocationRecord, locale: Locale = Locale.EN) -> Suggestion:
    return Suggestion(
        id=record.id,
        name=record.name,
        type_label=type_label(record.kind, locale),
        region=extract_region(record.parent_region),
        postal_code=str(record.code),
        is_primary=record.is_primary,
    )


def _rank(record: LocationRecord) -> Tuple[int, int]:
    # primary first, then shorter names
    return (0 if record.is_primary else 1, len(record.name))


class _Collector:
    """Accumulates records in arrival order, each id at most once."""

    def __init__(self, limit: int):
        self.limit = limit
        self.records: List[LocationRecord] = []
        self.seen: Set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.records) >= self.limit

    def add(self, record: LocationRecord) -> bool:
        if record.id in self.seen:
            return False
        self.records.append(record)
        self.seen.add(record.id)
        return True

    def add_capped(self, records: Iterable[LocationRecord]) -> None:
        for record in records:
            if self.full:
                return
            self.add(record)


class SearchEngine:
    """
    Search-as-you-type over a LocationStore.

    A non-empty query runs up to three passes over the index, each one
    adding only records not seen yet:
      1. exact key match
      2. key prefix match (postal-code keys only for an all-digit query)
      3. key substring match
    Passes 2 and 3 stop as soon as `limit` records are collected. The result
    is then ordered primary-first, shorter-name-first (stable) and cut to
    `limit`. An empty query returns the popular cities instead.
    """

    def __init__(self,
                 store: LocationStore,
                 popular_names: Optional[Sequence[str]] = None):
        self._store = store
        self._popular_names = list(
            POPULAR_CITY_NAMES if popular_names is None else popular_names
        )

    @property
    def store(self) -> LocationStore:
        return self._store

    def is_ready(self) -> bool:
        return self._store.is_ready()

    def search(self,
               query: Optional[str],
               limit: int = 10,
               locale: Locale = Locale.EN) -> List[Suggestion]:
        _check_limit(limit)

        raw = (query or "").strip()
        term = normalize_key(raw)
        if not term:
            return self.popular_suggestions(limit, locale)

        # one snapshot for the whole call, a concurrent load() swaps it
        index = self._store.index
        numeric_query = is_numeric(raw)
        found = _Collector(limit)

        for record in index.get(term):
            found.add(record)

        prefix_keys = index.numeric_items() if numeric_query else index.items()
        for key, records in prefix_keys:
            if found.full:
                break
            if key.startswith(term):
                found.add_capped(records)

        for key, records in index.items():
            if found.full:
                break
            if term in key:
                found.add_capped(records)

        ranked = sorted(found.records, key=_rank)[:limit]
        logger.debug(
            "search %r (numeric=%s) -> %d results", term, numeric_query, len(ranked)
        )
        return [format_suggestion(r, locale) for r in ranked]

    def popular_suggestions(self,
                            limit: int = 10,
                            locale: Locale = Locale.EN) -> List[Suggestion]:
        _check_limit(limit)

        index = self._store.index
        found = _Collector(limit)
        for city_name in self._popular_names:
            if found.full:
                break
            records = index.get(normalize_key(city_name))
            if not records:
                continue
            parent = next((r for r in records if r.is_primary), records[0])
            found.add(parent)

        return [format_suggestion(r, locale) for r in found.records]
