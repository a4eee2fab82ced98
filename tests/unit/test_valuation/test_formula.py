import pytest
from valuation.errors import MissingRequiredField
from valuation.factors import FactorResolution
from valuation.formula import (
    ResolvedInputs, ValuationFormulaEngine, compute_plot_base_value, round_currency,
)
from valuation.models import (
    AreaDetails, AreaType, CurrentLandUse, FactorSource, LocationAttributes,
    ProposedLandUse, ValuationRequest,
)
from valuation.settings import BandCombination, EngineSettings


def make_request(**overrides):
    fields = dict(
        district_code="D01",
        circle_code="C01",
        mouza_code="M01",
        lot_code="L01",
        land_use=CurrentLandUse("AGRI"),
        area=AreaDetails(lessa=50),
    )
    fields.update(overrides)
    return ValuationRequest(**fields)


def make_inputs(**overrides):
    fields = dict(
        mouza_base=100000,
        lot_increase_percent=10,
        current_land_use_increase=5,
        proposed_land_use_increase=20,
    )
    fields.update(overrides)
    return ResolvedInputs(**fields)


@pytest.fixture
def engine():
    return ValuationFormulaEngine(EngineSettings())


class TestPipeline:
    def test_reference_example(self, engine):
        """Verify 100000 with +10% lot and +5% land use over 50 lessa RURAL."""
        result = engine.compute(make_request(), make_inputs())
        b = result.breakdown
        assert b.plot_level_base == 115500
        assert b.adjusted_base == 115500
        assert result.per_unit_value == 115500
        assert b.area_based_total == 5775000
        assert result.total_value == 5890500
        assert b.total_value_with_rate == 5890500
        assert b.area_type_rate == 0.02

    def test_urban_rate(self, engine):
        result = engine.compute(make_request(area_type=AreaType.URBAN), make_inputs())
        assert result.total_value == 5832750

    def test_rural_urban_gap_is_one_percent(self, engine):
        """Verify RURAL and URBAN differ by exactly 1% of adjusted base × area."""
        rural = engine.compute(make_request(area=AreaDetails(lessa=37)), make_inputs())
        urban = engine.compute(make_request(area=AreaDetails(lessa=37), area_type=AreaType.URBAN),
                               make_inputs())
        adjusted = rural.breakdown.adjusted_base
        assert rural.total_value - urban.total_value == round_currency(adjusted * 37 * 0.01)

    def test_deterministic(self, engine):
        a = engine.compute(make_request(), make_inputs())
        b = engine.compute(make_request(), make_inputs())
        assert a == b

    def test_zero_area(self, engine):
        result = engine.compute(make_request(area=AreaDetails()), make_inputs())
        assert result.total_value == 0
        assert result.per_unit_value == 115500

    def test_per_unit_independent_of_area(self, engine):
        small = engine.compute(make_request(area=AreaDetails(lessa=1)), make_inputs())
        large = engine.compute(make_request(area=AreaDetails(bigha=3)), make_inputs())
        assert small.per_unit_value == large.per_unit_value


class TestLandUse:
    def test_proposed_increase_used_when_changing(self, engine):
        """Verify the proposed category's increase applies only under a land-use change."""
        result = engine.compute(make_request(land_use=ProposedLandUse("AGRI", "COMM")), make_inputs())
        assert result.breakdown.land_use_increase_percent == 20
        assert result.breakdown.plot_level_base == 132000
        assert result.breakdown.land_use_change is True
        assert result.breakdown.land_category_id == "COMM"

    def test_current_increase_used_otherwise(self, engine):
        result = engine.compute(make_request(), make_inputs(proposed_land_use_increase=50))
        assert result.breakdown.land_use_increase_percent == 5


class TestMonotonic:
    @pytest.mark.parametrize("lot", [0, 5, 10, 25, 40])
    def test_lot_percent(self, engine, lot):
        lower = engine.compute(make_request(), make_inputs(lot_increase_percent=lot))
        higher = engine.compute(make_request(), make_inputs(lot_increase_percent=lot + 5))
        assert higher.total_value >= lower.total_value

    @pytest.mark.parametrize("land_use", [0, 5, 10, 25])
    def test_land_use_percent(self, engine, land_use):
        lower = engine.compute(make_request(), make_inputs(current_land_use_increase=land_use))
        higher = engine.compute(make_request(), make_inputs(current_land_use_increase=land_use + 1))
        assert higher.total_value >= lower.total_value


class TestRounding:
    def test_half_up(self):
        assert round_currency(2.5) == 3
        assert round_currency(3.5) == 4
        assert round_currency(0.49) == 0

    def test_plot_level_rounded(self, engine):
        """Verify 1001 × 1.015 = 1016.015 rounds to 1016 before later stages."""
        result = engine.compute(make_request(area=AreaDetails(lessa=2)),
                                make_inputs(mouza_base=1001, lot_increase_percent=1.5,
                                            current_land_use_increase=0))
        assert result.breakdown.plot_level_base == 1016
        assert result.breakdown.area_based_total == 2032


class TestLocationAdjustment:
    def test_additive_bands(self, engine):
        result = engine.compute(make_request(), make_inputs(band_weights=(10, 5)))
        assert result.breakdown.band_weight_percent == 15
        assert result.breakdown.adjusted_base == round_currency(115500 * 1.15)
        assert result.per_unit_value == result.breakdown.adjusted_base

    def test_compound_bands(self):
        engine = ValuationFormulaEngine(EngineSettings(band_combination=BandCombination.COMPOUND))
        result = engine.compute(make_request(), make_inputs(band_weights=(10, 10)))
        assert result.breakdown.adjusted_base == 139755  # 115500 × 1.1 × 1.1

    def test_attribute_weights(self):
        settings = EngineSettings(attribute_weights={"corner_plot": 5.0, "litigated_plot": -10.0,
                                                     "has_tenant": 0.0})
        engine = ValuationFormulaEngine(settings)
        request = make_request(location=LocationAttributes(corner_plot=True, litigated_plot=True))
        result = engine.compute(request, make_inputs())
        assert result.breakdown.attribute_weight_percent == -5.0
        assert result.breakdown.adjusted_base == round_currency(115500 * 0.95)

    def test_unweighted_flags_have_no_effect(self, engine):
        request = make_request(location=LocationAttributes(corner_plot=True, has_tenant=True))
        assert engine.compute(request, make_inputs()).total_value == 5890500


class TestGeographicalFactor:
    def test_recorded_but_not_applied_by_default(self, engine):
        inputs = make_inputs(factor=FactorResolution(1.2, FactorSource.EXISTING))
        result = engine.compute(make_request(), inputs)
        assert result.breakdown.geographical_factor == 1.2
        assert result.breakdown.factor_source == "EXISTING"
        assert result.breakdown.plot_level_base == 115500

    def test_applied_when_enabled(self):
        engine = ValuationFormulaEngine(EngineSettings(apply_geographical_factor=True))
        inputs = make_inputs(factor=FactorResolution(1.2, FactorSource.AUTO_AVERAGE))
        assert engine.compute(make_request(), inputs).breakdown.plot_level_base == 138600

    def test_missing_factor_defaults(self, engine):
        result = engine.compute(make_request(), make_inputs())
        assert result.breakdown.geographical_factor == 1.0
        assert result.breakdown.factor_source == "DEFAULT"


class TestRequiredFields:
    @pytest.mark.parametrize("field", ["district_code", "circle_code", "mouza_code", "lot_code"])
    def test_missing_code(self, engine, field):
        with pytest.raises(MissingRequiredField) as exc:
            engine.compute(make_request(**{field: ""}), make_inputs())
        assert exc.value.field == field

    def test_missing_land_use(self, engine):
        with pytest.raises(MissingRequiredField) as exc:
            engine.compute(make_request(land_use=None), make_inputs())
        assert exc.value.field == "land_use"

    def test_missing_mouza_base(self, engine):
        with pytest.raises(MissingRequiredField) as exc:
            engine.compute(make_request(), make_inputs(mouza_base=None))
        assert exc.value.field == "mouza_base"

    def test_missing_lot_percent(self, engine):
        with pytest.raises(MissingRequiredField):
            engine.compute(make_request(), make_inputs(lot_increase_percent=None))


def test_plot_base_value():
    """Verify district base × factor × conversion factor."""
    assert compute_plot_base_value(50000, 1.1, 2) == 110000
    assert compute_plot_base_value(1000, 1.0005, 1) == 1001


@pytest.mark.parametrize("field", ["mouza_base", "lot_increase_percent"])
@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_non_finite_input_is_missing(engine, field, value):
    """Verify NaN or infinite master data raises MissingRequiredField, not a bare ValueError."""
    with pytest.raises(MissingRequiredField) as exc:
        engine.compute(make_request(), make_inputs(**{field: value}))
    assert exc.value.field == field
