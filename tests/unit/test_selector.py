import pytest

from unlocode_coords.common.coordinates import convert_to_decimal
from unlocode_coords.common.models import (
    Entry,
    GeocodingResponse,
    GeocodingResult,
    Provenance,
    ReconciledResult,
)
from unlocode_coords.pipeline.selector import CoordinateSelector

# 4528N 00911E = (45.46667, 9.18333); one degree of latitude is ~111 km.
MILANO = Entry(locode="ITMIL", country="IT", city="Milano", coordinates="4528N 00911E", subdivision_code="MI", subdivision_name="Milano")


class FakeLookup:
    def __init__(self, by_city=None):
        self.by_city = by_city
        self.by_city_calls = []

    def get_response_by_city(self, entry):
        self.by_city_calls.append(entry.locode)
        return self.by_city

    def query_url(self, entry, scrape_type):
        return f"https://nominatim.test/search?city={entry.city}&scrape={scrape_type}"


def _result(lat, lon=9.18333, name="Milano", subdivision="MI"):
    return GeocodingResult(
        latitude=lat,
        longitude=lon,
        name=name,
        display_name=name,
        subdivision_code=subdivision,
        source_url=f"https://osm.test/{name}/{lat}",
        place_rank=16,
    )


def _wikidata():
    return GeocodingResult(latitude=45.4669, longitude=9.19, name="Milan", source_url="https://www.wikidata.org/entity/Q490")


def test_no_response_keeps_registry_coordinates_without_source():
    entry = Entry(locode="ITMND", country="IT", city="Mondello, Palermo", coordinates="3812N 01319E", subdivision_code="PA")
    result = CoordinateSelector(FakeLookup()).select(entry, None, None)

    assert result.type is Provenance.UNLOCODE
    assert result.coordinates == convert_to_decimal("3812N 01319E")
    assert result.source is None
    assert result.alternatives is None


def test_no_response_prefers_wikidata_when_available():
    entry = Entry(locode="ITXXX", country="IT", city="Nowhere")
    wikidata = _wikidata()
    result = CoordinateSelector(FakeLookup()).select(entry, None, wikidata)

    assert result.type is Provenance.WIKIDATA
    assert result.source == wikidata
    assert result.coordinates.latitude == 45.4669


def test_no_response_and_no_coordinates_is_absent():
    entry = Entry(locode="ITXXX", country="IT", city="Nowhere")
    assert CoordinateSelector(FakeLookup()).select(entry, None, None) is None


def test_prefer_wikidata_override_beats_confirming_nominatim():
    response = GeocodingResponse("byRegion", (_result(45.5),))
    selector = CoordinateSelector(FakeLookup(), prefer_wikidata={"ITMIL"})

    result = selector.select(MILANO, response, _wikidata())

    assert result.type is Provenance.WIKIDATA


def test_prefer_unlocode_override_ignores_nominatim():
    response = GeocodingResponse("byRegion", (_result(47.46667),))
    selector = CoordinateSelector(FakeLookup(), prefer_unlocode={"ITMIL"})

    result = selector.select(MILANO, response, None)

    assert result.type is Provenance.UNLOCODE
    assert result.source is None


def test_first_result_within_max_distance_confirms_registry():
    first = _result(45.96667)
    response = GeocodingResponse("byRegion", (first, _result(47.46667)))

    result = CoordinateSelector(FakeLookup()).select(MILANO, response, None, max_distance_km=100)

    assert result.type is Provenance.UNLOCODE
    assert result.coordinates == convert_to_decimal("4528N 00911E")
    assert result.source == first


def test_later_close_result_confirms_registry_without_city_lookup():
    close = _result(45.5, name="Milano Centro")
    lookup = FakeLookup()
    response = GeocodingResponse("byRegion", (_result(47.46667), close))

    result = CoordinateSelector(lookup).select(MILANO, response, None)

    assert result.type is Provenance.UNLOCODE
    assert result.source == close
    assert lookup.by_city_calls == []


def test_by_region_miss_falls_back_to_city_lookup():
    in_other_region = _result(45.5, subdivision="MB")
    lookup = FakeLookup(by_city=GeocodingResponse("byCity", (_result(47.46667), in_other_region)))
    response = GeocodingResponse("byRegion", (_result(47.46667),))

    result = CoordinateSelector(lookup).select(MILANO, response, None)

    assert lookup.by_city_calls == ["ITMIL"]
    assert result.type is Provenance.UNLOCODE
    assert result.source == in_other_region


def test_by_city_response_never_triggers_city_lookup():
    lookup = FakeLookup(by_city=GeocodingResponse("byCity", (_result(45.5),)))
    response = GeocodingResponse("byCity", (_result(47.46667),))

    result = CoordinateSelector(lookup).select(MILANO, response, None)

    assert lookup.by_city_calls == []
    assert result.type is Provenance.NOMINATIM


def test_nothing_close_returns_first_result_with_alternatives():
    first = _result(47.46667, name="Milano A")
    second = _result(43.0, name="Milano B")
    wikidata = _wikidata()
    response = GeocodingResponse("byCity", (first, second))

    result = CoordinateSelector(FakeLookup()).select(MILANO, response, wikidata)

    assert result.type is Provenance.NOMINATIM
    assert result.coordinates.latitude == 47.46667
    assert result.alternatives == (second, wikidata)


def test_single_far_result_has_no_alternatives():
    response = GeocodingResponse("byCity", (_result(47.46667),))

    result = CoordinateSelector(FakeLookup()).select(MILANO, response, None)

    assert result.type is Provenance.NOMINATIM
    assert result.alternatives is None
    assert "alternatives" not in result.to_dict()


def test_close_radius_is_capped_by_max_distance():
    # ~15 km away: close under the default 25 km, not under a 10 km maximum.
    response = GeocodingResponse("byCity", (_result(47.46667), _result(45.60167)))

    result = CoordinateSelector(FakeLookup()).select(MILANO, response, None, max_distance_km=10)

    assert result.type is Provenance.NOMINATIM


def test_entry_without_coordinates_uses_nominatim():
    entry = Entry(locode="ITMIL", country="IT", city="Milano", subdivision_code="MI")
    response = GeocodingResponse("byRegion", (_result(45.5),))

    result = CoordinateSelector(FakeLookup()).select(entry, response, None)

    assert result.type is Provenance.NOMINATIM
    assert result.coordinates.latitude == 45.5


def test_reconciled_result_rejects_empty_alternatives():
    with pytest.raises(ValueError):
        ReconciledResult(locode="ITMIL", type=Provenance.NOMINATIM, coordinates=None, alternatives=())
