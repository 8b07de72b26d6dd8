import json
import os
from typing import Any, Dict, List, Optional

from .errors import DatasetLoadError
from .rules import KEY_SEPARATORS, fold_accents, normalize_key


def _default_data_path() -> str:
    data_path = os.path.join(
        os.path.dirname(__file__), "..", "data", "swiss_locations.json"
    )
    return os.path.abspath(data_path)


def generate_search_keys(name: str) -> List[str]:
    """
    Name variants a user is likely to type, in the form the dataset uses:
    - 'Zürich'       -> ['zurich']
    - 'St. Gallen'   -> ['st.-gallen', 'st-gallen']
    - 'Biel/Bienne'  -> ['biel-bienne', 'biel', 'bienne']
    - 'La Chaux-de-Fonds' -> ['la-chaux-de-fonds']

    The lower-cased name itself is left out, it is always indexed.
    """
    base = normalize_key(name)
    folded = normalize_key(fold_accents(name))

    hyphenated = folded
    for sep in KEY_SEPARATORS:
        hyphenated = hyphenated.replace(sep, "-")
    while "--" in hyphenated:
        hyphenated = hyphenated.replace("--", "-")

    cands = [folded, hyphenated, hyphenated.replace(".", "")]

    # bilingual names: every half is a key on its own
    if "/" in folded:
        cands.extend(part.strip() for part in folded.split("/"))

    out: List[str] = []
    for cand in cands:
        if cand and cand != base and cand not in out:
            out.append(cand)
    return out


def with_generated_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Append derived name variants after the keys the record already has."""
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return raw
    keys = list(raw.get("search_keys") or [])
    for key in generate_search_keys(name):
        if key not in keys:
            keys.append(key)
    return {**raw, "search_keys": keys}


def load_bundled_records(path: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    swiss_locations.json is a list of records:
    [
      {
        "id": "c1",
        "name": "Zürich",
        "search_keys": ["zurich"],
        "parent_region": "Ville - Zurich",
        "is_primary": true,
        "code": 8000,
        "kind": "ville"
      },
      ...
    ]

    Only the shape is checked here (list of objects). Record level
    validation, including duplicate ids, is LocationStore.load()'s job.
    """
    data_path = path or os.getenv("LOCATIONS_DATA_PATH") or _default_data_path()
    try:
        with open(data_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise DatasetLoadError(
            f"Could not read location dataset: {data_path}",
            details={"path": data_path, "reason": str(exc)},
        ) from exc

    if not isinstance(raw, list):
        raise DatasetLoadError(
            "Location dataset must be a JSON list",
            details={"path": data_path},
        )

    return [
        with_generated_keys(item) if isinstance(item, dict) else item
        for item in raw
    ]
