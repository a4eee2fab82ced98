import pytest
from masterdata.memory import InMemoryMasterData
from valuation.errors import NoFactorAvailable
from valuation.factors import FactorResolver, average_factor
from valuation.models import FactorSource, GeographicalFactor


def factor(value, daag=None, lot="L01", active=True):
    return GeographicalFactor("D01", "C01", lot, value, daag_number=daag, is_active=active)


@pytest.fixture
def resolver():
    source = InMemoryMasterData(geographical_factors=[
        factor(1.0, "100"),
        factor(1.1, "123"),
        factor(1.2, "200"),
        factor(9.9, "999", active=False),
        factor(2.0, "100", lot="L02"),
    ])
    return FactorResolver(source)


def test_exact_daag_is_existing(resolver):
    """Verify an exact daag record wins over the average."""
    resolution = resolver.resolve("D01", "C01", "L01", daag_number="123")
    assert resolution.factor == 1.1
    assert resolution.source == FactorSource.EXISTING
    assert resolution.parents == ()


def test_unknown_daag_averages_parents(resolver):
    """Verify {1.0, 1.1, 1.2} averages to 1.1 with the parents attached."""
    resolution = resolver.resolve("D01", "C01", "L01", daag_number="555")
    assert resolution.factor == pytest.approx(1.1)
    assert resolution.source == FactorSource.AUTO_AVERAGE
    assert sorted(p.factor for p in resolution.parents) == [1.0, 1.1, 1.2]


def test_no_daag_averages(resolver):
    resolution = resolver.resolve("D01", "C01", "L01")
    assert resolution.source == FactorSource.AUTO_AVERAGE


def test_inactive_records_ignored(resolver):
    resolution = resolver.resolve("D01", "C01", "L01", daag_number="999")
    assert resolution.source == FactorSource.AUTO_AVERAGE
    assert resolution.factor == pytest.approx(1.1)


def test_no_records_raises(resolver):
    with pytest.raises(NoFactorAvailable):
        resolver.resolve("D01", "C01", "L99", daag_number="1")


def test_default_fallback(resolver):
    """Verify the fallback is the neutral default, never 0."""
    resolution = resolver.resolve_or_default("D01", "C01", "L99")
    assert resolution.factor == 1.0
    assert resolution.source == FactorSource.DEFAULT


def test_zero_default_rejected(resolver):
    with pytest.raises(ValueError):
        resolver.resolve_or_default("D01", "C01", "L99", default=0)


def test_average_factor():
    assert average_factor([1.0, 2.0]) == 1.5


def test_resolution_to_dict(resolver):
    data = resolver.resolve("D01", "C01", "L01").to_dict()
    assert data["source"] == "AUTO_AVERAGE"
    assert len(data["parents"]) == 3


def test_average_ignores_daag_when_no_exact_match():
    """Verify the fallback averages every circle/lot record, the daag 123 record included."""
    source = InMemoryMasterData(geographical_factors=[
        factor(1.1, "123"),
        factor(1.0, "100"),
        factor(1.1, "150"),
        factor(1.2, "200"),
    ])
    resolver = FactorResolver(source)

    existing = resolver.resolve("D01", "C01", "L01", daag_number="123")
    assert existing.source == FactorSource.EXISTING
    assert existing.factor == 1.1

    averaged = resolver.resolve("D01", "C01", "L01", daag_number="456")
    assert averaged.source == FactorSource.AUTO_AVERAGE
    assert averaged.factor == pytest.approx(1.1)
    assert sorted(p.factor for p in averaged.parents) == [1.0, 1.1, 1.1, 1.2]
