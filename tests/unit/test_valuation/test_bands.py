import pytest
from valuation.bands import (
    MAIN_MARKET, MAIN_ROAD, METAL_ROAD, BandSelection, BandSelector,
)
from valuation.models import AreaType, ParameterBand


@pytest.fixture
def catalog():
    return [
        ParameterBand("R3", MAIN_ROAD, "500-1000m", 500, 1000, 2),
        ParameterBand("R1", MAIN_ROAD, "0-100m", 0, 100, 10),
        ParameterBand("R2", MAIN_ROAD, "100-500m", 100, 500, 5),
        ParameterBand("M1", METAL_ROAD, "0-100m", 0, 100, 4),
        ParameterBand("K1", MAIN_MARKET, "0-1km", 0, 1000, 3, area_type=AreaType.URBAN),
        ParameterBand("K2", MAIN_MARKET, "0-1km", 0, 1000, 1, area_type=AreaType.RURAL),
        ParameterBand("X1", MAIN_ROAD, "retired", 0, 50, 99, is_active=False),
    ]


@pytest.fixture
def selector(catalog):
    return BandSelector(catalog)


class TestBandSelector:
    def test_bands_sorted_by_distance(self, selector):
        """Verify a category's bands come back ascending by min range, inactive ones dropped."""
        codes = [b.code for b in selector.bands_for(MAIN_ROAD)]
        assert codes == ["R1", "R2", "R3"]

    def test_area_type_filter(self, selector):
        assert [b.code for b in selector.bands_for(MAIN_MARKET, AreaType.URBAN)] == ["K1"]
        assert [b.code for b in selector.bands_for(MAIN_MARKET, AreaType.RURAL)] == ["K2"]
        assert len(selector.bands_for(MAIN_ROAD, AreaType.URBAN)) == 3

    def test_select_band(self, selector):
        assert selector.select_band(MAIN_ROAD, "R2").weight_percent == 5

    def test_select_band_from_other_category(self, selector):
        assert selector.select_band(MAIN_ROAD, "M1") is None

    def test_select_nothing(self, selector):
        assert selector.select_band(MAIN_ROAD, "") is None
        assert selector.select_band(MAIN_ROAD, None) is None

    def test_categories(self, selector):
        assert selector.categories() == [MAIN_MARKET, MAIN_ROAD, METAL_ROAD]

    def test_cumulative_weight(self, selector):
        """Verify weights add across categories."""
        pairs = [(MAIN_ROAD, "R1"), (METAL_ROAD, "M1"), (MAIN_MARKET, "K2")]
        assert selector.cumulative_weight(pairs, AreaType.RURAL) == 15

    def test_unknown_band_in_pairs(self, selector):
        with pytest.raises(KeyError):
            selector.selection_from_pairs([(MAIN_ROAD, "nope")])


class TestBandSelection:
    def test_one_per_category(self, catalog):
        """Verify selecting a second band in a category replaces the first."""
        by_code = {b.code: b for b in catalog}
        selection = BandSelection()
        selection.select(MAIN_ROAD, by_code["R1"])
        selection.select(MAIN_ROAD, by_code["R2"])
        assert len(selection) == 1
        assert selection.get(MAIN_ROAD).code == "R2"
        assert selection.total_weight_percent == 5

    def test_none_clears(self, catalog):
        selection = BandSelection()
        selection.select(MAIN_ROAD, catalog[0])
        selection.select(MAIN_ROAD, None)
        assert len(selection) == 0
        assert selection.total_weight_percent == 0

    def test_wrong_category_rejected(self, catalog):
        with pytest.raises(ValueError):
            BandSelection().select(METAL_ROAD, catalog[0])

    def test_as_pairs(self, catalog):
        by_code = {b.code: b for b in catalog}
        selection = BandSelection()
        selection.select(METAL_ROAD, by_code["M1"])
        selection.select(MAIN_ROAD, by_code["R3"])
        assert selection.as_pairs() == ((MAIN_ROAD, "R3"), (METAL_ROAD, "M1"))
