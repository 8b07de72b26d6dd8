import pytest

from location_api.search.errors import InvalidArgument
from location_api.search.location_store import LocationStore
from location_api.search.rules import POPULAR_CITY_NAMES, Locale
from location_api.search.search_engine import (
    SearchEngine,
    extract_region,
    format_suggestion,
)
from location_api.search.dataset_loader import load_bundled_records
from location_api.models import LocationRecord


def _rec(id, name, code="", primary=True, keys=(), region="Ville - Zurich", kind="ville"):
    return {
        "id": id,
        "name": name,
        "search_keys": list(keys),
        "parent_region": region,
        "is_primary": primary,
        "code": code,
        "kind": kind,
    }


def _engine(*records):
    return SearchEngine(LocationStore(records))


def _names(suggestions):
    return [s.name for s in suggestions]


ZURICH = _rec("c1", "Zürich", 8000, keys=["zurich"])
USTER = _rec("c19", "Uster", 8610, keys=["uster"])


def test_search_postal_prefix_finds_city():
    engine = _engine(ZURICH, USTER)

    result = engine.search("80", 10)

    assert _names(result) == ["Zürich"]
    assert result[0].postal_code == "8000"


def test_search_full_postal_code_is_exact():
    engine = _engine(ZURICH, USTER)

    assert _names(engine.search("8000", 10)) == ["Zürich"]


def test_search_empty_query_limit_one_returns_a_popular_city():
    engine = _engine(ZURICH, USTER)

    result = engine.search("", 1)

    assert len(result) == 1
    assert result[0].name in POPULAR_CITY_NAMES


def test_numeric_prefix_pass_only_looks_at_code_keys():
    # "80 rue" starts with the digits but is a text key
    street = _rec("s1", "80 Rue", primary=False)
    engine = _engine(street, ZURICH)

    assert _names(engine.search("80", 1)) == ["Zürich"]
    assert _names(engine.search("80", 10)) == ["Zürich", "80 Rue"]


def test_whitespace_query_returns_popular_cities_in_priority_order():
    engine = _engine(
        _rec("c4", "Bern", 3000),
        _rec("c3", "Basel", 4000),
        _rec("c11", "Thun", 3600),
        ZURICH,
    )

    result = engine.search("   ", 10)

    assert _names(result) == ["Zürich", "Basel", "Bern"]
    assert _names(engine.search("", 2)) == ["Zürich", "Basel"]


def test_popular_prefers_primary_record_of_same_name():
    engine = _engine(
        _rec("x1", "Bern", 3001, primary=False, region="Comm. - Bern"),
        _rec("c4", "Bern", 3000, region="Ville - Bern"),
    )

    result = engine.popular_suggestions(5)

    assert [s.id for s in result] == ["c4"]


def test_popular_with_custom_names():
    engine = SearchEngine(LocationStore([ZURICH, USTER]), popular_names=["Uster"])

    assert _names(engine.search("", 10)) == ["Uster"]


def test_no_match_returns_empty_list():
    engine = _engine(ZURICH, USTER)

    assert engine.search("xyz", 10) == []
    assert engine.search("999", 10) == []


def test_record_reachable_by_several_keys_appears_once():
    engine = _engine(
        _rec("c10", "Biel/Bienne", 2500, keys=["biel", "bienne", "biel-bienne"]),
    )

    result = engine.search("bie", 10)

    assert [s.id for s in result] == ["c10"]


def test_exact_match_outranks_substring_match():
    pension = _rec("p1", "Pension", primary=False)
    sion = _rec("c20", "Sion", 1950, region="Ville - Valais")
    engine = _engine(pension, sion)

    assert _names(engine.search("sion", 10)) == ["Sion", "Pension"]
    # the cap is filled by the exact pass before substrings are considered
    assert _names(engine.search("sion", 1)) == ["Sion"]


def test_prefix_match_outranks_substring_match_under_cap():
    engine = _engine(
        _rec("a1", "Neuenhof", keys=["neuenhof"]),
        _rec("a2", "Hofstetten", keys=["hofstetten"]),
    )

    assert _names(engine.search("hof", 1)) == ["Hofstetten"]


def test_ranking_primary_first_then_shorter_name():
    engine = _engine(
        _rec("m1", "Zürich Oerlikon", 8050, primary=False),
        _rec("c1", "Zürich", 8000),
        _rec("c2", "Zürichberg", 8044),
    )

    assert _names(engine.search("zür", 10)) == [
        "Zürich", "Zürichberg", "Zürich Oerlikon",
    ]


def test_primary_outranks_shorter_non_primary_name():
    engine = _engine(
        _rec("m9", "Au", 8804, primary=False, kind="comm."),
        _rec("c30", "Aubonne", 1170, region="Ville - Vaud"),
    )

    assert _names(engine.search("au", 10)) == ["Aubonne", "Au"]


def test_ranking_is_stable_for_equal_keys():
    engine = _engine(
        _rec("c11", "Thun", 3600),
        _rec("c16", "Chur", 7000),
    )

    assert _names(engine.search("hu", 10)) == ["Thun", "Chur"]


@pytest.mark.parametrize("limit", [0, -1])
def test_non_positive_limit_is_rejected(limit):
    engine = _engine(ZURICH)

    with pytest.raises(InvalidArgument):
        engine.search("zur", limit)
    with pytest.raises(InvalidArgument):
        engine.search("", limit)


def test_search_is_repeatable():
    engine = SearchEngine(LocationStore(load_bundled_records()))

    assert engine.search("la", 5) == engine.search("la", 5)


def test_bundled_dataset_results_are_capped_and_unique():
    engine = SearchEngine(LocationStore(load_bundled_records()))

    for query in ["e", "1", "z", "ne", "8", "   "]:
        for limit in [1, 3, 50]:
            result = engine.search(query, limit)
            ids = [s.id for s in result]
            assert len(result) <= limit
            assert len(ids) == len(set(ids))


def test_bundled_dataset_sub_locality_by_postal_code():
    engine = SearchEngine(LocationStore(load_bundled_records()))

    result = engine.search("8050", 10)

    assert _names(result) == ["Zürich Oerlikon"]
    assert result[0].type_label == "Municipality"
    assert result[0].region == "Zurich"


def test_search_before_any_load_is_empty():
    engine = SearchEngine(LocationStore())

    assert engine.is_ready() is False
    assert engine.search("zur", 10) == []
    assert engine.search("", 10) == []


def test_format_suggestion_labels_and_region():
    record = LocationRecord.model_validate(ZURICH)

    en = format_suggestion(record)
    assert en.type_label == "City"
    assert en.region == "Zurich"
    assert en.postal_code == "8000"
    assert en.is_primary is True
    assert en.id == "c1"

    assert format_suggestion(record, Locale.FR).type_label == "Ville"
    assert format_suggestion(record, Locale.DE).type_label == "Stadt"


def test_format_suggestion_unknown_kind_and_missing_separator():
    record = LocationRecord.model_validate(
        _rec("x", "Somewhere", 0, region="Nowhere", kind="hamlet")
    )

    suggestion = format_suggestion(record, Locale.DE)

    assert suggestion.type_label == "Location"
    assert suggestion.region == ""
    assert suggestion.postal_code == "0"


def test_extract_region_uses_last_separator():
    assert extract_region("Ville - Basel-Stadt") == "Basel-Stadt"
    assert extract_region("Dist. - Bezirk - Horgen") == "Horgen"
    assert extract_region("") == ""
    assert extract_region("Ville - Zurich ") == "Zurich "
