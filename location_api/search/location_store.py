# location_api/search/location_store.py

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from location_api.models import LocationRecord
from .errors import DatasetLoadError
from .rules import code_key, is_numeric, normalize_key

logger = logging.getLogger(__name__)


class LocationIndex:
    """
    Read-only lookup structure derived from a record list:
        key (lower-cased name / name variant / postal code) -> records

    Buckets keep the dataset order and are tuples, the key mapping is a
    mapping proxy; nothing in here changes after build_index() returns.
    Numeric keys are also kept in a separate tuple (same order as the main
    mapping) so postal-code prefix scans skip the text keys.
    """

    __slots__ = ("_buckets", "_numeric_keys")

    def __init__(self, buckets: Dict[str, Tuple[LocationRecord, ...]]):
        self._buckets = MappingProxyType(buckets)
        self._numeric_keys = tuple(k for k in buckets if is_numeric(k))

    def get(self, key: str) -> Tuple[LocationRecord, ...]:
        return self._buckets.get(key, ())

    def items(self) -> Iterable[Tuple[str, Tuple[LocationRecord, ...]]]:
        return self._buckets.items()

    def numeric_items(self) -> Iterable[Tuple[str, Tuple[LocationRecord, ...]]]:
        for key in self._numeric_keys:
            yield key, self._buckets[key]

    def keys(self) -> Iterable[str]:
        return self._buckets.keys()

    @property
    def buckets(self) -> Mapping[str, Tuple[LocationRecord, ...]]:
        return self._buckets

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)


def index_keys(record: LocationRecord) -> List[str]:
    """
    All keys a record is reachable by: its name, each search key and its
    postal code when it has one. Lower-cased, first occurrence wins.
    """
    keys: List[str] = []
    for raw in [record.name, *record.search_keys, code_key(record.code)]:
        key = normalize_key(raw)
        if key and key not in keys:
            keys.append(key)
    return keys


def build_index(records: Iterable[LocationRecord]) -> LocationIndex:
    buckets: Dict[str, List[LocationRecord]] = {}
    for record in records:
        for key in index_keys(record):
            buckets.setdefault(key, []).append(record)
    return LocationIndex({k: tuple(v) for k, v in buckets.items()})


class _Snapshot:
    __slots__ = ("records", "by_id", "index")

    def __init__(self,
                 records: Tuple[LocationRecord, ...],
                 by_id: Mapping[str, LocationRecord],
                 index: LocationIndex):
        self.records = records
        self.by_id = by_id
        self.index = index


_EMPTY = _Snapshot((), MappingProxyType({}), LocationIndex({}))


def _coerce(item: Union[LocationRecord, Mapping[str, Any]], position: int) -> LocationRecord:
    if isinstance(item, LocationRecord):
        return item
    if not isinstance(item, Mapping):
        raise DatasetLoadError(
            f"Record #{position} is not an object",
            details={"position": position, "type": type(item).__name__},
        )
    try:
        return LocationRecord.model_validate(dict(item))
    except ValidationError as exc:
        raise DatasetLoadError(
            f"Record #{position} failed validation",
            details={"position": position, "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


class LocationStore:
    """
    Holds the active list of locations and the index derived from it.

    load() builds a complete new snapshot first and only then swaps the
    reference, so concurrent readers see either the old or the new dataset,
    never a half-built one. A failed load leaves the old snapshot in place.
    """

    def __init__(self, records: Optional[Iterable[Any]] = None):
        self._snapshot = _EMPTY
        if records is not None:
            self.load(records)

    def load(self, records: Iterable[Union[LocationRecord, Mapping[str, Any]]]) -> None:
        try:
            parsed = tuple(_coerce(item, pos) for pos, item in enumerate(records))
            by_id: Dict[str, LocationRecord] = {}
            duplicates: List[str] = []
            for record in parsed:
                if not record.id.strip():
                    raise DatasetLoadError("Record id must not be blank")
                if not record.name.strip():
                    raise DatasetLoadError(
                        f"Record {record.id!r} has a blank name",
                        details={"id": record.id},
                    )
                if record.id in by_id:
                    duplicates.append(record.id)
                    continue
                by_id[record.id] = record
            if duplicates:
                raise DatasetLoadError(
                    "Duplicate location ids",
                    details={"duplicate_ids": sorted(set(duplicates))},
                )
        except DatasetLoadError as exc:
            logger.warning("Rejected location dataset: %s", exc.message)
            raise

        index = build_index(parsed)
        self._snapshot = _Snapshot(parsed, MappingProxyType(by_id), index)
        logger.info(
            "Loaded %d locations (%d index keys)", len(parsed), len(index)
        )

    def build_index(self) -> LocationIndex:
        return build_index(self._snapshot.records)

    @property
    def index(self) -> LocationIndex:
        return self._snapshot.index

    def is_ready(self) -> bool:
        return self._snapshot is not _EMPTY

    def records(self) -> List[LocationRecord]:
        return list(self._snapshot.records)

    def by_id(self, id: str) -> Optional[LocationRecord]:
        return self._snapshot.by_id.get(id)

    def primary_records(self) -> List[LocationRecord]:
        return [r for r in self._snapshot.records if r.is_primary]

    def by_region(self, region: str) -> List[LocationRecord]:
        needle = region.lower()
        return [
            r for r in self._snapshot.records
            if needle in r.parent_region.lower()
        ]

    def __len__(self) -> int:
        return len(self._snapshot.records)
